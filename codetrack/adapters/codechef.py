"""CodeChef adapter scraping the public profile page"""
from typing import Dict
import logging
import re

from bs4 import BeautifulSoup

from codetrack.adapters.base import PlatformAdapter, ProfileNotFound, TransientFetchError, safe_int
from codetrack.database.models import Platform

logger = logging.getLogger(__name__)

PROFILE_URL = "https://www.codechef.com/users/{username}"

SOLVED_PATTERN = re.compile(r"Total\s+Problems\s+Solved\s*:?\s*(\d+)", re.I)
CONTESTS_PATTERN = re.compile(r"Contests?\s*\(\s*(\d+)\s*\)|No\.?\s+of\s+Contests\s+Participated\s*:?\s*(\d+)", re.I)


class CodeChefAdapter(PlatformAdapter):
    """Problems solved, contests, star rating and badge count"""

    platform = Platform.CODECHEF

    async def _fetch_metrics(self, username: str) -> Dict[str, object]:
        response = await self._request("GET", PROFILE_URL.format(username=username), username)

        # Unknown handles are redirected to the landing page
        if response.is_redirect:
            raise ProfileNotFound(self.platform, username, "profile redirected")

        soup = BeautifulSoup(response.text, "html.parser")
        profile = soup.select_one(".user-details-container, .user-profile-container")
        text = soup.get_text(" ", strip=True)

        solved_match = SOLVED_PATTERN.search(text)
        if profile is None and solved_match is None:
            raise TransientFetchError(self.platform, username, "unrecognised profile page")

        stars = 0
        rating_star = soup.select_one(".rating-star")
        if rating_star is not None:
            stars = len(rating_star.find_all("span")) or rating_star.get_text().count("★")
        if not stars:
            rating = soup.select_one(".rating")
            if rating is not None:
                stars = safe_int(rating.get_text())

        contests = 0
        participated = soup.select_one(".contest-participated-count b")
        if participated is not None:
            contests = safe_int(participated.get_text())
        else:
            match = CONTESTS_PATTERN.search(text)
            if match:
                contests = safe_int(match.group(1) or match.group(2))

        return {
            "problems_cc": safe_int(solved_match.group(1)) if solved_match else 0,
            "contests_cc": contests,
            "stars_cc": stars,
            "badges_cc": len(soup.select(".badge")),
        }
