"""Test utilities for link service tests."""

import asyncio
import random
import string
from datetime import datetime
from typing import Any, Dict, Optional

from redis.exceptions import ConnectionError as RedisConnectionError

from shortlink.core.security import create_access_token
from shortlink.models.link import Link

DOMAIN = "elga.io"
OTHER_DOMAIN = "go.example.com"


def random_string(length: int = 10) -> str:
    """Generate a random alphanumeric string."""
    return ''.join(random.choice(string.ascii_letters + string.digits) for _ in range(length))


def random_url() -> str:
    """Generate a random URL for testing."""
    domain = f"{random_string(8).lower()}.com"
    path = random_string(12)
    return f"https://{domain}/{path}"


def auth_headers(user_id: str = "user-1", role: str = "user") -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, role=role)}"}


def create_test_link_data(
    url: Optional[str] = None,
    domain: str = DOMAIN,
    keyword: Optional[str] = None,
    title: Optional[str] = None,
    owner_id: Optional[str] = None,
    active: bool = True,
    clicks: int = 0,
    created_at: Optional[datetime] = None,
    deleted_at: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Create test data dict for a Link."""
    data = {
        "url": url or random_url(),
        "domain": domain,
        "keyword": keyword or random_string(8),
        "title": title,
        "owner_id": owner_id,
        "active": active,
        "clicks": clicks,
        "deleted_at": deleted_at,
    }
    if created_at is not None:
        data["created_at"] = created_at
        data["updated_at"] = created_at
    return data


async def create_test_link(db, commit: bool = False, **kwargs) -> Link:
    """Create and persist a test Link in the database."""
    link = Link(**create_test_link_data(**kwargs))
    db.add(link)
    await db.flush()
    if commit:
        await db.commit()
    await db.refresh(link)
    return link


class MockRedis:
    """In-memory stand-in for the async Redis client."""

    def __init__(self):
        self.data = {}
        self.expiry = {}

    async def get(self, key):
        return self.data.get(key)

    async def set(self, key, value, ex=None, nx=False):
        if nx and key in self.data:
            return None
        self.data[key] = value
        if ex:
            self.expiry[key] = ex
        return True

    async def delete(self, key):
        self.data.pop(key, None)
        self.expiry.pop(key, None)

    async def ping(self):
        return True


class FailingRedis:
    """Redis client whose every call fails."""

    def __init__(self):
        self.calls = 0

    async def _fail(self, *args, **kwargs):
        self.calls += 1
        raise RedisConnectionError("Connection refused")

    get = _fail
    set = _fail
    delete = _fail


class SlowRedis(MockRedis):
    """Redis client that answers after ``delay`` seconds."""

    def __init__(self, delay: float = 1.0):
        super().__init__()
        self.delay = delay

    async def get(self, key):
        await asyncio.sleep(self.delay)
        return await super().get(key)
