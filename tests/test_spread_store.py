"""
Tests for the spread store.
"""

import asyncio
import json

import pytest

from photobook.errors import SerializationError, StorageError
from photobook.models import (
    ImageObject, Marker, MarkerKind, PageSide, Rect, Spread, TextObject, Viewport,
)
from photobook.services.constraint_service import ConstraintService
from photobook.services.geometry_service import GeometryService
from photobook.services.spread_store import SpreadStore
from photobook.services.storage_service import KeyValueState, MemoryBlobStore


class UnwritableState(KeyValueState):
    """Key-value state that refuses every write."""

    def set(self, key, value):
        return False


class FlakyBlobStore(MemoryBlobStore):
    """Memory store that fails on chosen keys."""

    def __init__(self, fail_put=(), fail_get=()):
        super().__init__()
        self.fail_put = set(fail_put)
        self.fail_get = set(fail_get)

    async def put(self, collection, key, value):
        if key in self.fail_put:
            raise StorageError(f"write refused for {key}", key)
        await super().put(collection, key, value)

    async def get(self, collection, key):
        if key in self.fail_get:
            raise StorageError(f"read refused for {key}", key)
        return await super().get(collection, key)


def _text(object_id, x=10.0, y=10.0):
    return TextObject(id=object_id, x=x, y=y, text=object_id)


def _ids(record):
    return [data['_id'] for data in record.objects]


async def _fill(store, indices):
    for index in indices:
        assert await store.save(index, [_text(f"s{index}")])


class TestSaveLoad:
    """Tests for saving and loading single spreads."""

    def test_save_then_load(self, store):
        """Test that a loaded spread equals the saved one by id and transform."""
        objects = [
            ImageObject(id="a", x=10, y=12, scale_x=0.5, scale_y=0.5, store_key="img_1",
                        width=400, height=300, clip=Rect(0, 0, 200, 300)),
            _text("b", 40, 50),
        ]

        async def run():
            assert await store.save(4, objects)
            return await store.load(4)

        record = asyncio.run(run())
        loaded = record.drawables()

        assert record.spread_index == 4
        assert record.page_range == (6, 7)
        assert [obj.id for obj in loaded] == ["a", "b"]
        assert loaded[0] == objects[0]
        assert (loaded[1].x, loaded[1].y) == (40, 50)

    def test_markers_are_not_saved(self, store):
        marker = Marker(name="left", kind=MarkerKind.PAGE, rect=Rect(0, 0, 10, 10))

        async def run():
            await store.save(2, [marker, _text("t")])
            return await store.load(2)

        assert _ids(asyncio.run(run())) == ["t"]

    def test_cover_round_trip(self, store):
        async def run():
            await store.save(0, [_text("front")])
            return await store.load(0)

        record = asyncio.run(run())
        assert record.page_range is None
        assert _ids(record) == ["front"]

    def test_missing_spread_is_none(self, store):
        assert asyncio.run(store.load(7)) is None

    def test_overwrite(self, store):
        async def run():
            await store.save(3, [_text("old")])
            await store.save(3, [_text("new")])
            return await store.load(3)

        assert _ids(asyncio.run(run())) == ["new"]

    def test_save_failure_returns_false(self, state):
        store = SpreadStore(MemoryBlobStore(quota_bytes=10), state, 14)
        assert asyncio.run(store.save(2, [_text("t")])) is False
        assert store.list_saved() == []

    def test_storage_read_failure_is_none(self, state):
        store = SpreadStore(FlakyBlobStore(fail_get={"spread_2"}), state, 14)
        assert asyncio.run(store.load(2)) is None

    def test_malformed_json_raises(self, blobs, store):
        asyncio.run(blobs.put("spreads", "spread_2", "{ not json"))
        with pytest.raises(SerializationError, match="not valid JSON"):
            asyncio.run(store.load(2))

    def test_marker_in_record_raises(self, blobs, store):
        payload = {'spread': 2, 'pages': [2, 3], 'ts': 0,
                   'objects': [{'type': 'rect', '_id': 'p', 'pageMarker': True}]}
        asyncio.run(blobs.put("spreads", "spread_2", json.dumps(payload)))
        with pytest.raises(SerializationError, match="page marker"):
            asyncio.run(store.load(2))

    def test_single_content_spread_scenario(self, blobs, state):
        """Test a one-spread book: image at (10,10) on spread 1 belongs to page 1."""
        store = SpreadStore(blobs, state, spread_count=1)
        image = ImageObject(id="imageA", x=10, y=10, width=40, height=30)

        async def run():
            await store.save(1, [image])
            return await store.load(1)

        loaded = asyncio.run(run()).drawables()
        assert [(obj.id, obj.x, obj.y) for obj in loaded] == [("imageA", 10, 10)]

        layout = GeometryService.compute_layout(Viewport(1280, 800), 1.0, Spread(1, 1))
        owner = ConstraintService.owner_page_for(loaded[0], layout.pages)
        assert owner is layout.page(PageSide.RIGHT)


class TestMetadata:
    """Tests for the saved-spread metadata index."""

    def test_save_updates_metadata(self, store):
        asyncio.run(store.save(5, [_text("t")]))
        saved = store.list_saved()
        assert len(saved) == 1
        assert saved[0].key == "spread_5"
        assert saved[0].page_range == (8, 9)

    def test_metadata_ordered_by_index(self, store):
        asyncio.run(_fill(store, [9, 2, 5]))
        assert [meta.spread_index for meta in store.list_saved()] == [2, 5, 9]

    def test_metadata_survives_restart(self, blobs, tmp_path):
        state_path = tmp_path / "state.json"
        store = SpreadStore(blobs, KeyValueState(state_path), 14)
        asyncio.run(store.save(3, [_text("t")]))

        reopened = SpreadStore(blobs, KeyValueState(state_path), 14)
        assert [meta.key for meta in reopened.list_saved()] == ["spread_3"]

    def test_delete(self, store):
        async def run():
            await store.save(6, [_text("t")])
            await store.delete(6)
            return await store.load(6)

        assert asyncio.run(run()) is None
        assert store.list_saved() == []

    def test_prune_beyond(self, blobs, state):
        """Test that records past the end of the book are removed on start-up."""
        big = SpreadStore(blobs, state, spread_count=20)
        asyncio.run(_fill(big, [3, 15, 18]))

        small = SpreadStore(blobs, state, spread_count=14)
        removed = asyncio.run(small.prune_beyond(14))

        assert removed == 2
        assert [meta.spread_index for meta in small.list_saved()] == [3]
        assert asyncio.run(small.load(15)) is None

    def test_metadata_write_failure_is_logged(self, blobs, caplog):
        """Test that a record written without its metadata entry still counts as saved."""
        store = SpreadStore(blobs, UnwritableState(), 14)

        assert asyncio.run(store.save(4, [_text("t")])) is True
        assert store.list_saved() == []
        assert "metadata index was not updated" in caplog.text
        assert _ids(asyncio.run(store.load(4))) == ["t"]

    def test_resize_recomputes_page_ranges(self, store):
        """Test that growing the book turns the old single-page last spread into two pages."""
        asyncio.run(_fill(store, [5, 14]))
        assert store.list_saved()[-1].page_range == (26, 26)

        assert store.resize(15)

        assert store.spread_count == 15
        assert [meta.page_range for meta in store.list_saved()] == [(8, 9), (26, 27)]


class TestReorder:
    """Tests for reordering content spreads."""

    @pytest.mark.parametrize("from_index,to_index", [(0, 4), (1, 4), (4, 1), (4, 0), (4, 4)])
    def test_protected_or_noop_requests(self, store, from_index, to_index):
        """Test that the cover and spread 1 never move."""
        asyncio.run(_fill(store, range(0, 15)))

        assert asyncio.run(store.reorder(from_index, to_index)) is False
        for index in range(0, 15):
            assert _ids(asyncio.run(store.load(index))) == [f"s{index}"]

    def test_reorder_forward(self, store):
        """Test moving spread 3 to position 10 in a 30-page book."""
        asyncio.run(_fill(store, range(0, 15)))

        assert asyncio.run(store.reorder(3, 10)) is True

        expected = {0: "s0", 1: "s1", 2: "s2", 3: "s4", 9: "s10", 10: "s3", 11: "s11", 14: "s14"}
        for index, object_id in expected.items():
            assert _ids(asyncio.run(store.load(index))) == [object_id]

    def test_reorder_backward(self, store):
        asyncio.run(_fill(store, range(2, 15)))

        assert asyncio.run(store.reorder(10, 3)) is True

        assert _ids(asyncio.run(store.load(3))) == ["s10"]
        assert _ids(asyncio.run(store.load(4))) == ["s3"]
        assert _ids(asyncio.run(store.load(10))) == ["s9"]
        assert _ids(asyncio.run(store.load(11))) == ["s11"]

    def test_reorder_rewrites_page_ranges(self, store):
        asyncio.run(_fill(store, range(2, 15)))
        asyncio.run(store.reorder(3, 10))

        record = asyncio.run(store.load(10))
        assert record.spread_index == 10
        assert record.page_range == (18, 19)

        meta = {m.spread_index: m for m in store.list_saved()}
        assert sorted(meta) == list(range(2, 15))
        assert meta[10].page_range == (18, 19)
        assert meta[3].page_range == (4, 5)

    def test_reorder_keeps_cover_metadata(self, store):
        asyncio.run(_fill(store, [0, 3, 4]))
        asyncio.run(store.reorder(3, 4))
        assert [m.spread_index for m in store.list_saved()] == [0, 3, 4]

    def test_reorder_with_gaps(self, store):
        """Test that positions without a record end up empty."""
        asyncio.run(_fill(store, [3]))

        assert asyncio.run(store.reorder(3, 6)) is True

        assert asyncio.run(store.load(3)) is None
        assert _ids(asyncio.run(store.load(6))) == ["s3"]
        assert [m.key for m in store.list_saved()] == ["spread_6"]

    def test_read_failure_aborts(self, state):
        blobs = FlakyBlobStore(fail_get={"spread_7"})
        store = SpreadStore(blobs, state, 14)
        asyncio.run(_fill(store, range(2, 15)))

        assert asyncio.run(store.reorder(3, 10)) is False

        blobs.fail_get.clear()
        assert _ids(asyncio.run(store.load(3))) == ["s3"]
        assert _ids(asyncio.run(store.load(10))) == ["s10"]

    def test_write_failure_reported(self, state):
        blobs = FlakyBlobStore()
        store = SpreadStore(blobs, state, 14)
        asyncio.run(_fill(store, range(2, 15)))

        blobs.fail_put.add("spread_5")
        assert asyncio.run(store.reorder(3, 10)) is False

        # Other positions were still rewritten
        assert _ids(asyncio.run(store.load(10))) == ["s3"]
        assert _ids(asyncio.run(store.load(4))) == ["s5"]
