"""Service layer for the link service.

Services implement the business rules and orchestrate repositories,
the redirect cache and the keyword generator.
"""

from shortlink.services.accounting import ClickAccounting
from shortlink.services.cleanup import CleanupService
from shortlink.services.codegen import KeywordGenerator
from shortlink.services.links import LinkPage, LinkService
from shortlink.services.resolver import RedirectResolver, ResolvedLink

__all__ = [
    "ClickAccounting",
    "CleanupService",
    "KeywordGenerator",
    "LinkPage",
    "LinkService",
    "RedirectResolver",
    "ResolvedLink",
]
