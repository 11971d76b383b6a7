"""LeetCode adapter using the public GraphQL endpoint"""
from typing import Dict
import logging

from codetrack.adapters.base import PlatformAdapter, ProfileNotFound, TransientFetchError, safe_int
from codetrack.database.models import Platform

logger = logging.getLogger(__name__)

GRAPHQL_URL = "https://leetcode.com/graphql/"

PROFILE_QUERY = """
query userProfile($username: String!) {
  matchedUser(username: $username) {
    username
    submitStats { acSubmissionNum { difficulty count } }
    badges { id }
  }
  userContestRanking(username: $username) {
    attendedContestsCount
  }
}
"""


class LeetCodeAdapter(PlatformAdapter):
    """Solved counts per difficulty, contests attended and badge count"""

    platform = Platform.LEETCODE

    async def _fetch_metrics(self, username: str) -> Dict[str, object]:
        response = await self._request(
            "POST",
            GRAPHQL_URL,
            username,
            json={"query": PROFILE_QUERY, "variables": {"username": username}},
            headers={"Content-Type": "application/json", "Referer": "https://leetcode.com"},
        )
        payload = self._json(response, username)
        if not isinstance(payload, dict):
            raise TransientFetchError(self.platform, username, "unexpected GraphQL payload")

        data = payload.get("data") or {}
        user = data.get("matchedUser")
        if user is None:
            errors = payload.get("errors") or []
            if errors or "matchedUser" in data:
                raise ProfileNotFound(self.platform, username, "user does not exist")
            raise TransientFetchError(self.platform, username, "GraphQL response without data")

        solved = {}
        for row in (user.get("submitStats") or {}).get("acSubmissionNum") or []:
            difficulty = str(row.get("difficulty", "")).lower()
            solved[difficulty] = safe_int(row.get("count"))

        # Users who never entered a contest get a null ranking object
        contest = data.get("userContestRanking") or {}

        return {
            "easy_lc": solved.get("easy", 0),
            "medium_lc": solved.get("medium", 0),
            "hard_lc": solved.get("hard", 0),
            "contests_lc": safe_int(contest.get("attendedContestsCount")),
            "badges_lc": len(user.get("badges") or []),
        }
