"""
Platform adapters.

One adapter per external platform, all sharing the PlatformAdapter contract:
``await adapter.fetch(username)`` returns PlatformMetrics or raises a FetchError
(InvalidUsername, ProfileNotFound or TransientFetchError).
"""

from typing import Dict

import httpx

from codetrack.adapters.base import (
    FetchError, InvalidUsername, ProfileNotFound, TransientFetchError,
    PlatformAdapter, PlatformMetrics, extract_username,
)
from codetrack.adapters.codechef import CodeChefAdapter
from codetrack.adapters.geeksforgeeks import GeeksForGeeksAdapter
from codetrack.adapters.github import GitHubAdapter
from codetrack.adapters.hackerrank import HackerRankAdapter
from codetrack.adapters.leetcode import LeetCodeAdapter
from codetrack.database.models import Platform

ADAPTER_CLASSES = {
    Platform.LEETCODE: LeetCodeAdapter,
    Platform.CODECHEF: CodeChefAdapter,
    Platform.GEEKSFORGEEKS: GeeksForGeeksAdapter,
    Platform.HACKERRANK: HackerRankAdapter,
    Platform.GITHUB: GitHubAdapter,
}


def build_adapters(client: httpx.AsyncClient, timeout: float = None) -> Dict[Platform, PlatformAdapter]:
    """Instantiate every platform adapter around one shared HTTP client."""
    return {platform: cls(client, timeout=timeout) for platform, cls in ADAPTER_CLASSES.items()}


__all__ = [
    'FetchError', 'InvalidUsername', 'ProfileNotFound', 'TransientFetchError',
    'PlatformAdapter', 'PlatformMetrics', 'extract_username',
    'ADAPTER_CLASSES', 'build_adapters',
]
