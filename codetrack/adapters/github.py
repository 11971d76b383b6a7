"""GitHub adapter combining the REST API with the contributions fragment"""
from typing import Dict
import logging
import re

from codetrack.adapters.base import PlatformAdapter, TransientFetchError, safe_int
from codetrack.database.models import Platform

logger = logging.getLogger(__name__)

USER_API_URL = "https://api.github.com/users/{username}"
CONTRIBUTIONS_URL = "https://github.com/users/{username}/contributions"

CONTRIBUTIONS_PATTERN = re.compile(r"([\d,]+)\s+contributions?\s+in\s+the\s+last\s+year", re.I)


class GitHubAdapter(PlatformAdapter):
    """Public repository count and contributions in the last year"""

    platform = Platform.GITHUB
    USERNAME_PATTERN = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")

    async def _fetch_metrics(self, username: str) -> Dict[str, object]:
        response = await self._request(
            "GET", USER_API_URL.format(username=username), username,
            headers={"Accept": "application/vnd.github+json"},
        )
        user = self._json(response, username)
        if not isinstance(user, dict):
            raise TransientFetchError(self.platform, username, "unexpected user payload")

        # Contributions are lazy-loaded on the profile page
        fragment = await self._request(
            "GET", CONTRIBUTIONS_URL.format(username=username), username,
            headers={"X-Requested-With": "XMLHttpRequest"},
        )
        contributions = 0
        match = CONTRIBUTIONS_PATTERN.search(fragment.text)
        if match:
            contributions = safe_int(match.group(1))
        else:
            logger.warning(f"[SCRAPING] No contribution count found for GitHub user {username}")

        return {
            "repos_gh": safe_int(user.get("public_repos")),
            "contributions_gh": contributions,
        }
