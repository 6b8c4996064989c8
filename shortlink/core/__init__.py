"""Core module for the link service."""

from shortlink.core.config import settings

__all__ = ["settings"]
