"""Field validation shared by the service and repository layers."""

import re
from typing import Optional
from urllib.parse import urlsplit

from shortlink.core.config import settings

KEYWORD_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


class LinkValidationError(ValueError):
    """A link field failed validation."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


def validate_url(url: Optional[str]) -> str:
    """Return the stripped destination URL or raise LinkValidationError."""
    if url is None or not str(url).strip():
        raise LinkValidationError("url", "url is required")
    url = str(url).strip()
    if len(url) > settings.URL_MAX_LENGTH:
        raise LinkValidationError("url", f"url must be at most {settings.URL_MAX_LENGTH} characters")
    if any(ch.isspace() for ch in url):
        raise LinkValidationError("url", "url must not contain whitespace")

    try:
        parts = urlsplit(url)
        hostname = parts.hostname
        # Accessing .port validates it
        parts.port
    except ValueError:
        raise LinkValidationError("url", "url is not a valid URL")

    if parts.scheme.lower() not in ("http", "https"):
        raise LinkValidationError("url", "url must be an absolute http or https URL")
    if not hostname:
        raise LinkValidationError("url", "url must include a host")
    if hostname.lower() in settings.ALLOWED_DOMAINS:
        raise LinkValidationError("url", "url must not point to a short link domain")
    return url


def validate_keyword(keyword: str) -> str:
    if not keyword or not KEYWORD_PATTERN.match(keyword):
        raise LinkValidationError(
            "keyword", "keyword may only contain letters, digits, '-' and '_'"
        )
    if not settings.KEYWORD_MIN_LENGTH <= len(keyword) <= settings.KEYWORD_MAX_LENGTH:
        raise LinkValidationError(
            "keyword",
            f"keyword must be between {settings.KEYWORD_MIN_LENGTH} "
            f"and {settings.KEYWORD_MAX_LENGTH} chars",
        )
    return keyword


def normalize_domain(domain: Optional[str]) -> str:
    """Lower-case the domain, defaulting to the primary one, and check the allow-list."""
    if domain is None or not domain.strip():
        return settings.PRIMARY_DOMAIN
    domain = domain.strip().lower()
    if domain not in settings.ALLOWED_DOMAINS:
        raise LinkValidationError("domain", f"domain '{domain}' is not an allowed short link domain")
    return domain


def validate_title(title: Optional[str]) -> Optional[str]:
    if title is None:
        return None
    title = title.strip()
    if len(title) > settings.TITLE_MAX_LENGTH:
        raise LinkValidationError("title", f"title must be at most {settings.TITLE_MAX_LENGTH} characters")
    return title or None


def is_resolvable_code(domain: str, keyword: str) -> bool:
    """Cheap pre-check for the redirect path; rejects codes that can never exist."""
    return (
        domain in settings.ALLOWED_DOMAINS
        and 0 < len(keyword) <= max(settings.KEYWORD_MAX_LENGTH, settings.KEYWORD_LENGTH)
        and KEYWORD_PATTERN.match(keyword) is not None
    )
