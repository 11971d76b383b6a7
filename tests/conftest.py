"""
Shared fixtures: a file-backed SQLite app per test and scripted platform adapters.
"""

import os
import sys

import pytest
import pytest_asyncio

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from codetrack.adapters.base import PlatformAdapter, TransientFetchError
from codetrack.app import CodeTrack
from codetrack.database.models import Platform


class FakeAdapter(PlatformAdapter):
    """Adapter replaying scripted responses per username.

    Each fetch consumes the next scripted item; the last one repeats. Items are
    metric dicts or FetchError instances to raise. Unscripted usernames fail
    transiently.
    """

    def __init__(self, platform: Platform):
        super().__init__(client=None, timeout=1)
        self.platform = platform
        self.responses = {}
        self.calls = []

    def script(self, username: str, *responses):
        self.responses[username] = list(responses)

    async def _fetch_metrics(self, username: str):
        self.calls.append(username)
        queue = self.responses.get(username)
        if not queue:
            raise TransientFetchError(self.platform, username, "no scripted response")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return dict(item)


@pytest.fixture
def fake_adapters():
    return {platform: FakeAdapter(platform) for platform in Platform}


@pytest.fixture
def sleeps():
    return []


@pytest_asyncio.fixture
async def app(tmp_path, fake_adapters, sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    tracker = CodeTrack(
        database_url=f"sqlite:///{tmp_path / 'codetrack_test.db'}",
        adapters=fake_adapters,
        sleep=fake_sleep,
        use_redis=False
    )
    await tracker.start()
    yield tracker
    await tracker.close()


async def link_accepted(app, fake_adapters, student_id, platform, username, *responses):
    """Submit a link without verification and wait for its first sync."""
    fake_adapters[platform].script(username, *responses)
    await app.submit_platform_link(student_id, platform, username, verification_required=False)
    await app.wait_for_background_syncs()
