"""Base adapter for all external coding platforms"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional
import json
import logging
import random
import re

import httpx

from codetrack.config import Config
from codetrack.database.models import Platform

logger = logging.getLogger(__name__)

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
]

DEFAULT_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


class FetchError(Exception):
    """Base class for adapter failures"""
    kind = "fetch_error"
    retryable = False

    def __init__(self, platform: Platform, username: str, reason: str):
        super().__init__(f"{platform.value}:{username}: {reason}")
        self.platform = platform
        self.username = username
        self.reason = reason


class InvalidUsername(FetchError):
    """Empty or malformed username; never retried"""
    kind = "invalid_username"


class ProfileNotFound(FetchError):
    """Profile does not exist upstream; never retried"""
    kind = "not_found"


class TransientFetchError(FetchError):
    """Timeout, transport failure, throttling or an unparseable response"""
    kind = "transient"
    retryable = True


@dataclass(frozen=True)
class PlatformMetrics:
    """Normalized metrics returned by one successful fetch"""
    platform: Platform
    username: str
    values: Dict[str, int]
    extras: Dict[str, object] = field(default_factory=dict)

    def record_values(self) -> Dict[str, object]:
        """Values keyed by PerformanceRecord column."""
        merged = dict(self.values)
        merged.update(self.extras)
        return merged


def extract_username(value: Optional[str]) -> str:
    """Accept a bare username or a profile URL and return the username part."""
    if value is None:
        return ""
    value = value.strip()
    value = value.split("?", 1)[0].split("#", 1)[0].rstrip("/")
    if "/" in value:
        value = value.rsplit("/", 1)[-1]
    return value.lstrip("@")


def safe_int(value, default: int = 0) -> int:
    """Parse ints from upstream values like '1,204', '3★' or None."""
    if value is None:
        return default
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return int(value)
    match = re.search(r"-?[\d,]+", str(value))
    if not match:
        return default
    try:
        return int(match.group(0).replace(",", ""))
    except ValueError:
        return default


class PlatformAdapter(ABC):
    """Fetches and normalizes one platform's metrics for a username.

    Adapters only perform network calls; persisting the result is the
    orchestrator's job.
    """

    platform: Platform = None
    USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9_.\-]{1,64}$")

    def __init__(self, client: httpx.AsyncClient, timeout: float = None):
        self.client = client
        self.timeout = timeout or Config.REQUEST_TIMEOUT

    def normalize_username(self, username: Optional[str]) -> str:
        """Return the canonical username or raise InvalidUsername."""
        candidate = extract_username(username)
        if not candidate:
            raise InvalidUsername(self.platform, username or "", "username is empty")
        if not self.USERNAME_PATTERN.match(candidate):
            raise InvalidUsername(self.platform, candidate, "username contains invalid characters")
        return candidate

    async def fetch(self, username: str) -> PlatformMetrics:
        """Fetch metrics for `username`; raises a FetchError subclass on failure."""
        username = self.normalize_username(username)
        logger.info(f"[SCRAPING] Fetching {self.platform.display_name} statistics for: {username}")
        raw = await self._fetch_metrics(username)

        values = {metric: safe_int(raw.get(metric)) for metric in self.platform.metrics}
        extras = {key: value for key, value in raw.items() if key not in values}
        logger.debug(f"[SCRAPING] {self.platform.display_name} data for {username}: {values}")
        return PlatformMetrics(platform=self.platform, username=username, values=values, extras=extras)

    @abstractmethod
    async def _fetch_metrics(self, username: str) -> Dict[str, object]:
        """Return a mapping of this platform's metric columns (missing keys count as 0)."""
        pass

    async def _request(self, method: str, url: str, username: str, **kwargs) -> httpx.Response:
        """Perform one HTTP call and translate failures into FetchError kinds."""
        headers = dict(DEFAULT_HEADERS)
        headers["User-Agent"] = random.choice(USER_AGENTS)
        headers.update(kwargs.pop("headers", {}) or {})

        try:
            response = await self.client.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except httpx.TimeoutException as e:
            raise TransientFetchError(self.platform, username, f"timeout requesting {url}") from e
        except httpx.TransportError as e:
            raise TransientFetchError(self.platform, username, f"transport error: {e}") from e

        if response.status_code == 404:
            raise ProfileNotFound(self.platform, username, f"{url} returned 404")
        if response.status_code == 429 or response.status_code >= 500:
            raise TransientFetchError(self.platform, username, f"{url} returned {response.status_code}")
        if response.status_code != 200 and not response.is_redirect:
            raise TransientFetchError(self.platform, username, f"unexpected status {response.status_code} from {url}")
        return response

    def _json(self, response: httpx.Response, username: str):
        """Decode a JSON body, treating garbage as a transient upstream anomaly."""
        try:
            return response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise TransientFetchError(self.platform, username, "malformed JSON response") from e
