"""GeeksforGeeks adapter scraping the public profile page"""
from typing import Dict
import json
import logging
import re

from bs4 import BeautifulSoup

from codetrack.adapters.base import PlatformAdapter, ProfileNotFound, TransientFetchError, safe_int
from codetrack.database.models import Platform

logger = logging.getLogger(__name__)

PROFILE_URL = "https://www.geeksforgeeks.org/user/{username}/"

DIFFICULTY_PATTERN = re.compile(r"\b(SCHOOL|BASIC|EASY|MEDIUM|HARD)\s*\(\s*(\d+)\s*\)", re.I)
CONTESTS_PATTERN = re.compile(r"Contests?\s+Attended\s*:?\s*(\d+)|(\d+)\s+Contests?\s+Attended", re.I)
NOT_FOUND_MARKERS = ("user does not exist", "userName not found")


class GeeksForGeeksAdapter(PlatformAdapter):
    """Solved counts per difficulty tier and contests attended"""

    platform = Platform.GEEKSFORGEEKS

    async def _fetch_metrics(self, username: str) -> Dict[str, object]:
        response = await self._request(
            "GET", PROFILE_URL.format(username=username), username, follow_redirects=True
        )
        html = response.text
        if any(marker.lower() in html.lower() for marker in NOT_FOUND_MARKERS):
            raise ProfileNotFound(self.platform, username, "user does not exist")

        soup = BeautifulSoup(html, "html.parser")
        counts = self._counts_from_next_data(soup)
        text = soup.get_text(" ", strip=True)

        if counts is None:
            counts = {}
            for tier, value in DIFFICULTY_PATTERN.findall(text):
                counts[tier.lower()] = safe_int(value)
            if not counts and username.lower() not in text.lower():
                raise TransientFetchError(self.platform, username, "unrecognised profile page")

        contests = 0
        match = CONTESTS_PATTERN.search(text)
        if match:
            contests = safe_int(match.group(1) or match.group(2))

        return {
            "school_gfg": counts.get("school", 0),
            "basic_gfg": counts.get("basic", 0),
            "easy_gfg": counts.get("easy", 0),
            "medium_gfg": counts.get("medium", 0),
            "hard_gfg": counts.get("hard", 0),
            "contests_gfg": contests,
        }

    def _counts_from_next_data(self, soup: BeautifulSoup):
        """Difficulty counts from the embedded Next.js state, when present."""
        script = soup.find("script", id="__NEXT_DATA__")
        if script is None or not script.string:
            return None
        try:
            state = json.loads(script.string)
        except json.JSONDecodeError:
            logger.debug("GeeksforGeeks __NEXT_DATA__ is not valid JSON")
            return None

        page_props = (state.get("props") or {}).get("pageProps") or {}
        solved = page_props.get("userSubmissionsInfo")
        if not isinstance(solved, dict):
            return None
        return {tier.lower(): len(problems or {}) for tier, problems in solved.items()}
