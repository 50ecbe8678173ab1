"""Unit tests for offset and keyset/cursor-based pagination."""

import base64
import json
from datetime import UTC, datetime
from types import SimpleNamespace

import pytest

from content_api.api.schemas.pagination import CursorDirection
from content_api.api.schemas.post import PostQuery
from content_api.core.errors import ValidationError
from content_api.db.models import Post
from content_api.repos.pagination import (
    decode_cursor,
    encode_cursor,
    get_keyset_page_info,
    paginate,
    paginate_list,
)
from content_api.repos.post_repo import build_base_query
from content_api.services import post_service
from tests.conftest import acreate_post

POST_ID = "0f8e2a8c-5b1d-4c3e-9a7f-6d2b1c0e4a59"


def _row_id(i):
    return f"00000000-0000-0000-0000-{i:012d}"


def _raw_cursor(payload):
    return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()


class TestOffsetPagination:
    """Offset pages over a select statement."""

    @pytest.fixture
    async def posts(self, db):
        return [await acreate_post(db, f"Post {i}", minutes=i) for i in range(25)]

    @pytest.mark.anyio
    async def test_first_page(self, db, posts):
        stmt = build_base_query().order_by(Post.created_at.desc())
        items, meta = await paginate(db, stmt, page=1, limit=10)

        assert len(items) == 10
        assert items[0].title == "Post 24"
        assert meta.total_items == 25
        assert meta.item_count == 10
        assert meta.per_page == 10
        assert meta.total_pages == 3
        assert meta.current_page == 1

    @pytest.mark.anyio
    async def test_last_partial_page(self, db, posts):
        stmt = build_base_query().order_by(Post.created_at.desc())
        items, meta = await paginate(db, stmt, page=3, limit=10)

        assert [p.title for p in items] == [f"Post {i}" for i in range(4, -1, -1)]
        assert meta.item_count == 5

    @pytest.mark.anyio
    async def test_page_past_the_end_keeps_totals(self, db, posts):
        stmt = build_base_query().order_by(Post.created_at.desc())
        items, meta = await paginate(db, stmt, page=4, limit=10)

        assert items == []
        assert meta.item_count == 0
        assert meta.total_items == 25
        assert meta.total_pages == 3
        assert meta.current_page == 4

    @pytest.mark.anyio
    async def test_empty_table(self, db):
        items, meta = await paginate(db, build_base_query(), page=1, limit=10)

        assert items == []
        assert meta.total_items == 0
        assert meta.total_pages == 0


class TestListPagination:
    """Offset pages over an in-memory list."""

    def test_slices_and_counts(self):
        items, meta = paginate_list(list(range(7)), page=2, limit=3)

        assert items == [3, 4, 5]
        assert meta.total_items == 7
        assert meta.total_pages == 3
        assert meta.item_count == 3

    def test_past_the_end(self):
        items, meta = paginate_list(list(range(7)), page=5, limit=3)

        assert items == []
        assert meta.item_count == 0
        assert meta.total_items == 7


class TestCursorEncoding:
    """Cursor encoding and decoding."""

    def test_encode_cursor_is_base64_json(self):
        created_at = datetime(2024, 1, 15, 12, 30, 45, tzinfo=UTC)
        cursor = encode_cursor("01234567-89ab-cdef-0123-456789abcdef", created_at)

        payload = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        assert payload == {
            "id": "01234567-89ab-cdef-0123-456789abcdef",
            "created_at": created_at.isoformat(),
        }

    def test_decode_cursor_returns_original_values(self):
        created_at = datetime(2024, 1, 15, 12, 30, 45, tzinfo=UTC)
        cursor = encode_cursor(POST_ID, created_at)

        assert decode_cursor(cursor) == (POST_ID, created_at)

    @pytest.mark.parametrize(
        "cursor",
        [
            "invalid-base64!!!",
            base64.urlsafe_b64encode(b"not json").decode(),
            _raw_cursor({"id": POST_ID}),
            _raw_cursor({"id": POST_ID, "created_at": "yesterday"}),
            _raw_cursor({"id": "x", "created_at": "2024-01-01T00:00:00"}),
            _raw_cursor({"id": 42, "created_at": "2024-01-01T00:00:00"}),
        ],
    )
    def test_decode_invalid_cursor(self, cursor):
        with pytest.raises(ValueError, match="Invalid cursor"):
            decode_cursor(cursor)


class TestKeysetPageInfo:
    """Page info computed from fetched rows."""

    def _rows(self, count):
        return [
            SimpleNamespace(id=_row_id(i), created_at=datetime(2024, 1, 1, 0, i, tzinfo=UTC))
            for i in range(count)
        ]

    def test_first_page_with_more(self):
        items, has_next, has_prev, next_cursor, prev_cursor = get_keyset_page_info(
            self._rows(3), 2, CursorDirection.NEXT, is_first_page=True
        )

        assert len(items) == 2
        assert has_next is True
        assert has_prev is False
        assert decode_cursor(next_cursor)[0] == _row_id(1)
        assert prev_cursor is None

    def test_prev_direction_reverses_rows(self):
        items, has_next, has_prev, _, prev_cursor = get_keyset_page_info(
            self._rows(2), 2, CursorDirection.PREV
        )

        assert [item.id for item in items] == [_row_id(1), _row_id(0)]
        assert has_next is True
        assert has_prev is False
        assert prev_cursor is None

    def test_empty_page(self):
        assert get_keyset_page_info([], 2, CursorDirection.NEXT) == ([], False, False, None, None)


class TestPostFeed:
    """Keyset pagination of the post list."""

    @pytest.fixture
    async def posts(self, db):
        return [await acreate_post(db, f"Post {i}", minutes=i) for i in range(5)]

    @pytest.mark.anyio
    async def test_walk_forward_and_back(self, db, posts):
        first = await post_service.paginate_cursor(db, PostQuery(), None, 2)
        assert [p.title for p in first.items] == ["Post 4", "Post 3"]
        assert first.has_next is True
        assert first.has_prev is False
        assert first.prev_cursor is None

        second = await post_service.paginate_cursor(db, PostQuery(), first.next_cursor, 2)
        assert [p.title for p in second.items] == ["Post 2", "Post 1"]
        assert second.has_next is True
        assert second.has_prev is True

        third = await post_service.paginate_cursor(db, PostQuery(), second.next_cursor, 2)
        assert [p.title for p in third.items] == ["Post 0"]
        assert third.has_next is False
        assert third.next_cursor is None

        back = await post_service.paginate_cursor(
            db, PostQuery(), second.prev_cursor, 2, CursorDirection.PREV
        )
        assert [p.title for p in back.items] == ["Post 4", "Post 3"]
        assert back.has_prev is False
        assert back.has_next is True

    @pytest.mark.anyio
    async def test_feed_skips_trashed_posts(self, db, posts):
        await acreate_post(db, "Trashed", minutes=10, deleted=True)

        page = await post_service.paginate_cursor(db, PostQuery(), None, 10)

        assert "Trashed" not in [p.title for p in page.items]
        assert len(page.items) == 5

    @pytest.mark.anyio
    async def test_invalid_cursor_raises_validation_error(self, db):
        with pytest.raises(ValidationError, match="Invalid cursor"):
            await post_service.paginate_cursor(db, PostQuery(), "garbage!!", 2)

    @pytest.mark.anyio
    async def test_cursor_with_non_uuid_id_raises_validation_error(self, db, posts):
        cursor = _raw_cursor({"id": "x", "created_at": "2024-01-01T12:00:00+00:00"})

        with pytest.raises(ValidationError, match="Invalid cursor"):
            await post_service.paginate_cursor(db, PostQuery(), cursor, 2)
