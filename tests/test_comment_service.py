"""
Tests for the comment service: creation rules, like toggling and the
paginated listing with reply counts.
"""
from __future__ import annotations

import hashlib
import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import Insert, delete, false, func, insert, select, update

from serieshub.core.errors import NotFound, SeriesHubError, ValidationFailed
from serieshub.core.events import ChangeFilter, change_feed
from serieshub.models.models import Comment, CommentLike
from serieshub.schemas.schemas import CommentCreate
from serieshub.services.comments import comment_service as comment_service_module
from serieshub.services.comments.comment_service import CommentService

from .conftest import add_comment

service = CommentService()


def _payload(series_id, **overrides) -> CommentCreate:
    fields = {"content": "Great episode!", "author_name": "Alex", "series_id": series_id}
    fields.update(overrides)
    return CommentCreate(**fields)


async def _likes_count(db, comment_id) -> int:
    return await db.scalar(select(Comment.likes_count).where(Comment.id == comment_id))


class TestCreateComment:

    @pytest.mark.asyncio
    async def test_creates_top_level_comment(self, db, catalog):
        comment = await service.create_comment(_payload(catalog.series_id), db)

        assert comment.content == "Great episode!"
        assert comment.author_name == "Alex"
        assert comment.author_email is None
        assert comment.likes_count == 0
        assert comment.parent_id is None
        assert comment.series_id == catalog.series_id

        listed = await service.get_comments_with_stats(catalog.series_id, db)
        assert [c.id for c in listed] == [comment.id]
        assert listed[0].reply_count == 0

    @pytest.mark.asyncio
    async def test_trims_fields_and_normalizes_blank_email(self, db, catalog):
        comment = await service.create_comment(
            _payload(catalog.series_id, content="  spaced out  ", author_name="\tSam ", author_email="   "),
            db,
        )
        assert comment.content == "spaced out"
        assert comment.author_name == "Sam"
        assert comment.author_email is None

    @pytest.mark.asyncio
    async def test_keeps_trimmed_email(self, db, catalog):
        comment = await service.create_comment(
            _payload(catalog.series_id, author_email=" Alex@Example.COM "), db,
        )
        assert comment.author_email == "Alex@Example.COM"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field,value,message", [
        ("content", "   ", "Comment content is required"),
        ("author_name", "", "Author name is required"),
        ("content", "x" * 2001, "at most 2000"),
        ("author_name", "n" * 101, "at most 100"),
        ("author_email", "not-an-email", "valid email"),
    ])
    async def test_rejects_invalid_fields(self, db, catalog, field, value, message):
        with pytest.raises(ValidationFailed, match=message):
            await service.create_comment(_payload(catalog.series_id, **{field: value}), db)

        assert await db.scalar(select(func.count(Comment.id))) == 0

    @pytest.mark.asyncio
    async def test_accepts_boundary_lengths(self, db, catalog):
        comment = await service.create_comment(
            _payload(catalog.series_id, content="x" * 2000, author_name="n" * 100), db,
        )
        assert len(comment.content) == 2000
        assert len(comment.author_name) == 100

    @pytest.mark.asyncio
    async def test_missing_series(self, db, catalog):
        with pytest.raises(NotFound, match="Series not found"):
            await service.create_comment(_payload(uuid.uuid4()), db)

    @pytest.mark.asyncio
    async def test_episode_must_belong_to_series(self, db, catalog):
        with pytest.raises(NotFound, match="Episode not found"):
            await service.create_comment(
                _payload(catalog.series_id, episode_id=catalog.other_episode_id), db,
            )

    @pytest.mark.asyncio
    async def test_episode_comment(self, db, catalog):
        comment = await service.create_comment(
            _payload(catalog.series_id, episode_id=catalog.pilot_id), db,
        )
        assert comment.episode_id == catalog.pilot_id

    @pytest.mark.asyncio
    async def test_parent_must_belong_to_series(self, db, catalog):
        foreign = await add_comment(db, catalog.other_series_id, "elsewhere")
        with pytest.raises(NotFound, match="Parent comment not found"):
            await service.create_comment(_payload(catalog.series_id, parent_id=foreign.id), db)

    @pytest.mark.asyncio
    async def test_reply_is_counted_but_not_listed(self, db, catalog):
        parent = await service.create_comment(_payload(catalog.series_id), db)
        reply = await service.create_comment(
            _payload(catalog.series_id, content="Agreed", parent_id=parent.id), db,
        )
        assert reply.parent_id == parent.id

        listed = await service.get_comments_with_stats(catalog.series_id, db)
        assert [c.id for c in listed] == [parent.id]
        assert listed[0].reply_count == 1

    @pytest.mark.asyncio
    async def test_publishes_insert_event(self, db, catalog):
        sub = change_feed.subscribe(ChangeFilter(series_id=str(catalog.series_id)))
        comment = await service.create_comment(_payload(catalog.series_id), db)

        event = await sub.get(timeout=1)
        assert event is not None
        assert event.table == "comments"
        assert event.event_type == "INSERT"
        assert event.record_id == str(comment.id)


class TestToggleLike:

    @pytest.mark.asyncio
    async def test_like_then_unlike(self, db, catalog):
        comment = await add_comment(db, catalog.series_id)

        first = await service.toggle_comment_like(comment.id, "u1", db)
        assert first.action == "liked"
        assert first.likes_count == 1
        assert first.user_liked is True

        second = await service.toggle_comment_like(comment.id, "u1", db)
        assert second.action == "unliked"
        assert second.likes_count == 0
        assert second.user_liked is False

        assert await _likes_count(db, comment.id) == 0
        assert await db.scalar(select(func.count(CommentLike.id))) == 0

    @pytest.mark.asyncio
    async def test_identifiers_are_independent(self, db, catalog):
        comment = await add_comment(db, catalog.series_id)

        await service.toggle_comment_like(comment.id, "u1", db)
        result = await service.toggle_comment_like(comment.id, "u2", db)
        assert result.likes_count == 2

        result = await service.toggle_comment_like(comment.id, "u1", db)
        assert result.action == "unliked"
        assert result.likes_count == 1
        assert await _likes_count(db, comment.id) == 1

    @pytest.mark.asyncio
    async def test_counter_starts_from_stored_value(self, db, catalog):
        comment = await add_comment(db, catalog.series_id, likes_count=7)
        result = await service.toggle_comment_like(comment.id, "u1", db)
        assert result.likes_count == 8

    @pytest.mark.asyncio
    @pytest.mark.parametrize("identifier", ["", "   "])
    async def test_blank_identifier(self, db, catalog, identifier):
        comment = await add_comment(db, catalog.series_id)
        with pytest.raises(ValidationFailed, match="Invalid parameters"):
            await service.toggle_comment_like(comment.id, identifier, db)

    @pytest.mark.asyncio
    async def test_missing_comment(self, db, catalog):
        with pytest.raises(NotFound, match="Comment not found"):
            await service.toggle_comment_like(uuid.uuid4(), "u1", db)

    @pytest.mark.asyncio
    async def test_publishes_like_and_comment_events(self, db, catalog):
        comment = await add_comment(db, catalog.series_id, episode_id=catalog.pilot_id)
        sub = change_feed.subscribe(
            ChangeFilter(series_id=str(catalog.series_id), episode_id=str(catalog.pilot_id))
        )

        await service.toggle_comment_like(comment.id, "u1", db)

        like_event = await sub.get(timeout=1)
        update_event = await sub.get(timeout=1)
        assert (like_event.table, like_event.event_type) == ("comment_likes", "INSERT")
        assert (update_event.table, update_event.event_type) == ("comments", "UPDATE")
        assert update_event.data == {"likes_count": 1}

    @pytest.mark.asyncio
    async def test_concurrent_like_between_delete_and_insert(self, db, catalog, monkeypatch):
        """Another toggle commits the same like after our delete found nothing."""
        comment = await add_comment(db, catalog.series_id)
        original_execute = db.execute
        raced = []

        async def execute(statement, *args, **kwargs):
            if isinstance(statement, Insert) and statement.table.name == "comment_likes" and not raced:
                raced.append(True)
                await original_execute(insert(CommentLike.__table__).values(
                    id=uuid.uuid4(), comment_id=comment.id, user_identifier="u1",
                    created_at=datetime.now(timezone.utc),
                ))
                await original_execute(
                    update(Comment.__table__)
                    .where(Comment.__table__.c.id == comment.id)
                    .values(likes_count=Comment.__table__.c.likes_count + 1)
                )
            return await original_execute(statement, *args, **kwargs)

        monkeypatch.setattr(db, "execute", execute)

        result = await service.toggle_comment_like(comment.id, "u1", db)

        assert raced == [True]
        assert result.action == "unliked"
        assert result.user_liked is False
        assert result.likes_count == 0
        like_rows = await db.scalar(
            select(func.count(CommentLike.id)).where(CommentLike.comment_id == comment.id)
        )
        assert await _likes_count(db, comment.id) == like_rows == 0

    @pytest.mark.asyncio
    async def test_gives_up_when_every_round_is_lost(self, db, catalog, monkeypatch):
        comment = await add_comment(db, catalog.series_id, likes_count=3)
        comment_id = comment.id
        # An insert that never lands, as if every attempt lost its race
        monkeypatch.setattr(
            comment_service_module, "_insert_ignoring_duplicates",
            lambda session, table, values: delete(table).where(false()),
        )

        with pytest.raises(SeriesHubError, match="please try again"):
            await service.toggle_comment_like(comment_id, "u1", db)

        assert await _likes_count(db, comment_id) == 3
        assert await db.scalar(select(func.count(CommentLike.id))) == 0
        assert change_feed.recent_events() == []


class TestCommentsWithStats:

    @pytest.mark.asyncio
    async def test_newest_first_top_level_only(self, db, catalog):
        old = await add_comment(db, catalog.series_id, "old", minutes=0)
        new = await add_comment(db, catalog.series_id, "new", minutes=10)
        mid = await add_comment(db, catalog.series_id, "mid", minutes=5)
        await add_comment(db, catalog.series_id, "reply", minutes=20, parent_id=old.id)

        listed = await service.get_comments_with_stats(catalog.series_id, db)

        assert [c.id for c in listed] == [new.id, mid.id, old.id]
        assert all(c.parent_id is None for c in listed)

    @pytest.mark.asyncio
    async def test_reply_counts(self, db, catalog):
        busy = await add_comment(db, catalog.series_id, "busy", minutes=0)
        quiet = await add_comment(db, catalog.series_id, "quiet", minutes=1)
        for i in range(3):
            await add_comment(db, catalog.series_id, f"reply {i}", minutes=2 + i, parent_id=busy.id)

        counts = {c.id: c.reply_count for c in await service.get_comments_with_stats(catalog.series_id, db)}

        assert counts == {busy.id: 3, quiet.id: 0}

    @pytest.mark.asyncio
    async def test_episode_filter(self, db, catalog):
        series_wide = await add_comment(db, catalog.series_id, "series", minutes=0)
        on_pilot = await add_comment(db, catalog.series_id, "pilot", minutes=1, episode_id=catalog.pilot_id)
        await add_comment(db, catalog.series_id, "second", minutes=2, episode_id=catalog.second_id)

        pilot_only = await service.get_comments_with_stats(catalog.series_id, db, episode_id=catalog.pilot_id)
        everything = await service.get_comments_with_stats(catalog.series_id, db)

        assert [c.id for c in pilot_only] == [on_pilot.id]
        assert len(everything) == 3
        assert series_wide.id in {c.id for c in everything}

    @pytest.mark.asyncio
    async def test_excludes_other_series(self, db, catalog):
        await add_comment(db, catalog.other_series_id, "elsewhere")
        assert await service.get_comments_with_stats(catalog.series_id, db) == []

    @pytest.mark.asyncio
    async def test_pagination(self, db, catalog):
        created = [await add_comment(db, catalog.series_id, f"c{i}", minutes=i) for i in range(5)]
        newest_first = [c.id for c in reversed(created)]

        first = await service.get_comments_with_stats(catalog.series_id, db, limit=2, offset=0)
        second = await service.get_comments_with_stats(catalog.series_id, db, limit=2, offset=2)
        last = await service.get_comments_with_stats(catalog.series_id, db, limit=2, offset=4)

        assert [c.id for c in first + second + last] == newest_first

    @pytest.mark.asyncio
    async def test_repeated_calls_are_identical(self, db, catalog):
        for i in range(4):
            await add_comment(db, catalog.series_id, f"same time {i}", minutes=0)

        first = await service.get_comments_with_stats(catalog.series_id, db)
        second = await service.get_comments_with_stats(catalog.series_id, db)

        assert [c.model_dump() for c in first] == [c.model_dump() for c in second]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit,offset", [(0, 0), (201, 0), (10, -1)])
    async def test_rejects_bad_paging(self, db, catalog, limit, offset):
        with pytest.raises(ValidationFailed):
            await service.get_comments_with_stats(catalog.series_id, db, limit=limit, offset=offset)

    @pytest.mark.asyncio
    async def test_avatar_from_email(self, db, catalog):
        await add_comment(db, catalog.series_id, author_email="Someone@Example.com ")
        [item] = await service.get_comments_with_stats(catalog.series_id, db)

        digest = hashlib.md5(b"someone@example.com").hexdigest()
        assert item.avatar_url == f"https://www.gravatar.com/avatar/{digest}?d=identicon&s=32"

    @pytest.mark.asyncio
    async def test_no_avatar_without_email(self, db, catalog):
        await add_comment(db, catalog.series_id)
        [item] = await service.get_comments_with_stats(catalog.series_id, db)
        assert item.avatar_url is None


class TestReplies:

    @pytest.mark.asyncio
    async def test_oldest_first(self, db, catalog):
        parent = await add_comment(db, catalog.series_id, "parent", minutes=0)
        late = await add_comment(db, catalog.series_id, "late", minutes=9, parent_id=parent.id)
        early = await add_comment(db, catalog.series_id, "early", minutes=3, parent_id=parent.id)

        replies = await service.list_replies(parent.id, db)

        assert [r.id for r in replies] == [early.id, late.id]

    @pytest.mark.asyncio
    async def test_unknown_comment(self, db, catalog):
        with pytest.raises(NotFound):
            await service.list_replies(uuid.uuid4(), db)
