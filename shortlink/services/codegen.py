"""Short code generation."""

import secrets
from typing import Optional

from shortlink.core.config import settings


class KeywordGenerator:
    """
    Draws random keywords from an unambiguous alphabet.

    Codes are not sequential and carry no information about the link.
    Uniqueness is not checked here; the store's constraint decides and
    the link service retries on a collision.
    """

    def __init__(self, length: Optional[int] = None, alphabet: Optional[str] = None):
        self.length = length if length is not None else settings.KEYWORD_LENGTH
        self.alphabet = alphabet or settings.KEYWORD_ALPHABET
        if self.length < 1:
            raise ValueError("keyword length must be positive")

    def generate(self, domain: str) -> str:
        # The domain does not influence the code; keyword spaces are per domain in the store
        return "".join(secrets.choice(self.alphabet) for _ in range(self.length))

    @property
    def keyspace(self) -> int:
        """Number of distinct codes this generator can produce."""
        return len(self.alphabet) ** self.length
