"""Common API parameter definitions.

Paging parameters are deliberately lenient: out-of-range values are clamped
by the service instead of being rejected.
"""

from fastapi import Query


def PageParam(default: int = 1) -> int:
    return Query(default, description="1-indexed page number; values below 1 mean 1")


def LimitParam(default: int = 0) -> int:
    """
    Page size parameter.

    Args:
        default: 0 selects the configured default page size

    Returns:
        A Query parameter
    """
    return Query(
        default,
        description="Number of links per page; non-positive means the default, large values are capped",
    )
