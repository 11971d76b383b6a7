"""
Platform adapter tests against canned upstream responses (httpx.MockTransport).
"""

import json

import httpx
import pytest

from codetrack.adapters import (
    CodeChefAdapter, GeeksForGeeksAdapter, GitHubAdapter, HackerRankAdapter, LeetCodeAdapter,
    build_adapters,
)
from codetrack.adapters.base import (
    InvalidUsername, ProfileNotFound, TransientFetchError, extract_username, safe_int,
)
from codetrack.database.models import Platform


def client_for(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


LEETCODE_PAYLOAD = {
    "data": {
        "matchedUser": {
            "username": "alice",
            "submitStats": {"acSubmissionNum": [
                {"difficulty": "All", "count": 60},
                {"difficulty": "Easy", "count": 30},
                {"difficulty": "Medium", "count": 25},
                {"difficulty": "Hard", "count": 5},
            ]},
            "badges": [{"id": "1"}, {"id": "2"}],
        },
        "userContestRanking": {"attendedContestsCount": 7},
    }
}


async def test_leetcode_parses_graphql_profile():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        seen["agent"] = request.headers.get("user-agent")
        return httpx.Response(200, json=LEETCODE_PAYLOAD)

    async with client_for(handler) as client:
        metrics = await LeetCodeAdapter(client).fetch("https://leetcode.com/u/alice/")

    assert seen["body"]["variables"] == {"username": "alice"}
    assert seen["agent"]
    assert metrics.username == "alice"
    assert metrics.values == {
        "easy_lc": 30, "medium_lc": 25, "hard_lc": 5, "contests_lc": 7, "badges_lc": 2,
    }


async def test_leetcode_user_without_contests_counts_zero():
    payload = json.loads(json.dumps(LEETCODE_PAYLOAD))
    payload["data"]["userContestRanking"] = None

    async with client_for(lambda request: httpx.Response(200, json=payload)) as client:
        metrics = await LeetCodeAdapter(client).fetch("alice")

    assert metrics.values["contests_lc"] == 0


async def test_leetcode_missing_user_is_not_found():
    payload = {"data": {"matchedUser": None}, "errors": [{"message": "That user does not exist."}]}
    async with client_for(lambda request: httpx.Response(200, json=payload)) as client:
        with pytest.raises(ProfileNotFound):
            await LeetCodeAdapter(client).fetch("ghost")


async def test_leetcode_malformed_json_is_transient():
    async with client_for(lambda request: httpx.Response(200, text="<html>oops</html>")) as client:
        with pytest.raises(TransientFetchError):
            await LeetCodeAdapter(client).fetch("alice")


@pytest.mark.parametrize("status", [429, 500, 503])
async def test_throttling_and_server_errors_are_transient(status):
    async with client_for(lambda request: httpx.Response(status)) as client:
        with pytest.raises(TransientFetchError) as excinfo:
            await HackerRankAdapter(client).fetch("alice")
    assert excinfo.value.retryable


async def test_timeout_is_transient():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with client_for(handler) as client:
        with pytest.raises(TransientFetchError):
            await GitHubAdapter(client).fetch("octocat")


async def test_http_404_is_not_found():
    async with client_for(lambda request: httpx.Response(404)) as client:
        with pytest.raises(ProfileNotFound) as excinfo:
            await GitHubAdapter(client).fetch("octocat")
    assert not excinfo.value.retryable


async def test_invalid_username_is_rejected_before_any_request():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    async with client_for(handler) as client:
        adapter = HackerRankAdapter(client)
        with pytest.raises(InvalidUsername):
            await adapter.fetch("   ")
        with pytest.raises(InvalidUsername):
            await adapter.fetch("bad name!")
    assert calls == []


async def test_hackerrank_sums_stars_of_earned_badges():
    payload = {"models": [
        {"badge_name": "Problem Solving", "stars": 5},
        {"badge_name": "Python", "stars": 3},
        {"badge_name": "SQL", "stars": 0},
    ]}
    async with client_for(lambda request: httpx.Response(200, json=payload)) as client:
        metrics = await HackerRankAdapter(client).fetch("alice")

    assert metrics.values == {"stars_hr": 8, "badges_hr": 2}
    assert metrics.extras == {"badges_list_hr": ["Problem Solving", "Python"]}
    assert metrics.record_values()["badges_list_hr"] == ["Problem Solving", "Python"]


async def test_github_reads_repos_and_contributions():
    def handler(request):
        if request.url.host == "api.github.com":
            return httpx.Response(200, json={"login": "octocat", "public_repos": 8})
        return httpx.Response(200, text="<h2>1,234 contributions in the last year</h2>")

    async with client_for(handler) as client:
        metrics = await GitHubAdapter(client).fetch("octocat")

    assert metrics.values == {"repos_gh": 8, "contributions_gh": 1234}


async def test_github_missing_contribution_count_defaults_to_zero():
    def handler(request):
        if request.url.host == "api.github.com":
            return httpx.Response(200, json={"public_repos": 3})
        return httpx.Response(200, text="<div>nothing here</div>")

    async with client_for(handler) as client:
        metrics = await GitHubAdapter(client).fetch("octocat")

    assert metrics.values == {"repos_gh": 3, "contributions_gh": 0}


CODECHEF_PAGE = """
<html><body>
<div class="user-details-container">
  <div class="rating-star"><span>★</span><span>★</span><span>★</span></div>
</div>
<div class="contest-participated-count">No. of Contests Participated: <b>12</b></div>
<section class="rating-data-section problems-solved"><h3>Total Problems Solved: 140</h3></section>
<div class="widget badges"><div class="badge">Contest Star</div><div class="badge">Problem Solver</div></div>
</body></html>
"""


async def test_codechef_scrapes_profile_page():
    async with client_for(lambda request: httpx.Response(200, text=CODECHEF_PAGE)) as client:
        metrics = await CodeChefAdapter(client).fetch("chef_alice")

    assert metrics.values == {"problems_cc": 140, "contests_cc": 12, "stars_cc": 3, "badges_cc": 2}


async def test_codechef_redirect_means_unknown_user():
    def handler(request):
        return httpx.Response(302, headers={"Location": "https://www.codechef.com/"})

    async with client_for(handler) as client:
        with pytest.raises(ProfileNotFound):
            await CodeChefAdapter(client).fetch("ghost")


async def test_codechef_unrecognised_page_is_transient():
    async with client_for(lambda request: httpx.Response(200, text="<html>maintenance</html>")) as client:
        with pytest.raises(TransientFetchError):
            await CodeChefAdapter(client).fetch("chef_alice")


async def test_geeksforgeeks_reads_next_data():
    state = {"props": {"pageProps": {"userSubmissionsInfo": {
        "School": {"1": {}, "2": {}},
        "Easy": {"3": {}},
        "Medium": {"4": {}, "5": {}, "6": {}},
    }}}}
    page = (
        '<html><body><script id="__NEXT_DATA__" type="application/json">'
        f"{json.dumps(state)}</script><div>Contests Attended 4</div></body></html>"
    )
    async with client_for(lambda request: httpx.Response(200, text=page)) as client:
        metrics = await GeeksForGeeksAdapter(client).fetch("geek")

    assert metrics.values == {
        "school_gfg": 2, "basic_gfg": 0, "easy_gfg": 1, "medium_gfg": 3, "hard_gfg": 0, "contests_gfg": 4,
    }


async def test_geeksforgeeks_falls_back_to_difficulty_tabs():
    page = "<html><body><div>geek</div><div>EASY (10)</div><div>HARD (2)</div></body></html>"
    async with client_for(lambda request: httpx.Response(200, text=page)) as client:
        metrics = await GeeksForGeeksAdapter(client).fetch("geek")

    assert metrics.values["easy_gfg"] == 10
    assert metrics.values["hard_gfg"] == 2
    assert metrics.values["contests_gfg"] == 0


async def test_geeksforgeeks_missing_user():
    page = "<html><body>User does not exist</body></html>"
    async with client_for(lambda request: httpx.Response(200, text=page)) as client:
        with pytest.raises(ProfileNotFound):
            await GeeksForGeeksAdapter(client).fetch("ghost")


async def test_build_adapters_covers_every_platform():
    async with httpx.AsyncClient() as client:
        adapters = build_adapters(client)
    assert set(adapters) == set(Platform)
    assert all(adapter.platform == platform for platform, adapter in adapters.items())


def test_extract_username():
    assert extract_username("alice") == "alice"
    assert extract_username("  https://github.com/octocat/  ") == "octocat"
    assert extract_username("https://www.codechef.com/users/chef?tab=stats") == "chef"
    assert extract_username("@alice") == "alice"
    assert extract_username(None) == ""


def test_safe_int():
    assert safe_int("1,204") == 1204
    assert safe_int("3★") == 3
    assert safe_int(None) == 0
    assert safe_int("n/a", default=-1) == -1
    assert safe_int(7.9) == 7
