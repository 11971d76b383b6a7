"""
Eligibility selector: which links a sync pass picks up.
"""

from datetime import timedelta

from sqlalchemy import select

from codetrack.database.models import LinkStatus, Platform, PlatformLink
from codetrack.services.eligibility import SelectionMode, SyncTarget
from codetrack.utils.time_utils import utcnow


async def add_links(app, rows):
    """rows: (student_id, platform, username, status, last_scrape_attempt)"""
    students = sorted({row[0] for row in rows})
    for student_id in students:
        await app.register_student(student_id, f"Student {student_id}")
    async with app.db.transaction() as session:
        for student_id, platform, username, status, attempted in rows:
            session.add(PlatformLink(
                student_id=student_id, platform=platform, username=username,
                status=status, last_scrape_attempt=attempted
            ))


async def test_full_and_cooldown_modes(app):
    now = utcnow()
    await add_links(app, [
        ("S2", Platform.LEETCODE, "b_lc", LinkStatus.ACCEPTED, None),
        ("S1", Platform.GITHUB, "a_gh", LinkStatus.ACCEPTED, None),
        ("S1", Platform.CODECHEF, "a_cc", LinkStatus.SUSPENDED, now - timedelta(hours=25)),
        ("S1", Platform.HACKERRANK, "a_hr", LinkStatus.SUSPENDED, now - timedelta(hours=2)),
        ("S3", Platform.LEETCODE, "c_lc", LinkStatus.SUSPENDED, None),
        ("S3", Platform.GITHUB, "c_gh", LinkStatus.PENDING, None),
        ("S3", Platform.CODECHEF, "c_cc", LinkStatus.REJECTED, None),
    ])

    selected = await app.selector.select(now=now)

    assert selected == [
        SyncTarget("S1", Platform.CODECHEF, "a_cc"),
        SyncTarget("S1", Platform.GITHUB, "a_gh"),
        SyncTarget("S2", Platform.LEETCODE, "b_lc"),
        SyncTarget("S3", Platform.LEETCODE, "c_lc"),
    ]

    full_only = await app.selector.select([SelectionMode.FULL], now=now)
    assert [t.username for t in full_only] == ["a_gh", "b_lc"]

    retry_only = await app.selector.select([SelectionMode.COOLDOWN_RETRY], now=now)
    assert [t.username for t in retry_only] == ["a_cc", "c_lc"]


async def test_links_without_username_are_never_selected(app):
    await add_links(app, [
        ("S1", Platform.LEETCODE, None, LinkStatus.ACCEPTED, None),
        ("S1", Platform.GITHUB, "", LinkStatus.SUSPENDED, None),
    ])

    assert await app.selector.select() == []


async def test_cooldown_elapses(app):
    now = utcnow()
    await add_links(app, [("S1", Platform.LEETCODE, "a", LinkStatus.SUSPENDED, now - timedelta(hours=23))])

    assert await app.selector.select(now=now) == []
    assert len(await app.selector.select(now=now + timedelta(hours=2))) == 1


async def test_select_for_student_ignores_cooldown(app):
    now = utcnow()
    await add_links(app, [
        ("S1", Platform.LEETCODE, "a", LinkStatus.SUSPENDED, now),
        ("S1", Platform.GITHUB, "a-gh", LinkStatus.ACCEPTED, None),
        ("S1", Platform.CODECHEF, "a_cc", LinkStatus.PENDING, None),
        ("S2", Platform.LEETCODE, "b", LinkStatus.ACCEPTED, None),
    ])

    targets = await app.selector.select_for_student("S1")

    assert [(t.platform, t.username) for t in targets] == [
        (Platform.GITHUB, "a-gh"),
        (Platform.LEETCODE, "a"),
    ]


async def test_selection_does_not_modify_links(app):
    await add_links(app, [("S1", Platform.LEETCODE, "a", LinkStatus.ACCEPTED, None)])

    await app.selector.select()

    async with app.db.get_session() as session:
        link = (await session.execute(select(PlatformLink))).scalar_one()
    assert link.status == LinkStatus.ACCEPTED
    assert link.last_scrape_attempt is None
