"""HackerRank adapter using the public badges REST endpoint"""
from typing import Dict
import logging

from codetrack.adapters.base import PlatformAdapter, TransientFetchError, safe_int
from codetrack.database.models import Platform

logger = logging.getLogger(__name__)

BADGES_URL = "https://www.hackerrank.com/rest/hackers/{username}/badges"


class HackerRankAdapter(PlatformAdapter):
    """Total stars across earned badges plus the badge list"""

    platform = Platform.HACKERRANK

    async def _fetch_metrics(self, username: str) -> Dict[str, object]:
        response = await self._request(
            "GET", BADGES_URL.format(username=username), username,
            headers={"Accept": "application/json"},
        )
        payload = self._json(response, username)
        if not isinstance(payload, dict) or not isinstance(payload.get("models", []), list):
            raise TransientFetchError(self.platform, username, "unexpected badges payload")

        earned = [badge for badge in payload.get("models") or [] if safe_int(badge.get("stars")) > 0]
        return {
            "stars_hr": sum(safe_int(badge.get("stars")) for badge in earned),
            "badges_hr": len(earned),
            "badges_list_hr": [badge.get("badge_name") for badge in earned if badge.get("badge_name")],
        }
