"""
Spread Store - Per-spread persistence and the saved-spread metadata index.

Each spread is stored as one JSON record under ``spread_<index>`` in the
``spreads`` blob collection. A lightweight metadata index (key, index, page
range, timestamp per saved spread) lives in the key-value state so the
thumbnail strip can list saved spreads without loading their objects.

Storage failures are caught here: every operation logs the problem and
reports success or failure to the caller instead of raising.
"""

import asyncio
import json
import logging
import time
from typing import Dict, Iterable, List, Optional, Tuple

from ..config import METADATA_STATE_KEY, SPREADS_COLLECTION, spread_key
from ..errors import SerializationError, StorageError
from ..models import DrawableObject, SpreadMeta, SpreadRecord, page_range_for
from ..validators import BookValidator
from .storage_service import BlobStore, KeyValueState

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class SpreadStore:
    """
    Saves, loads, deletes and reorders spread records.

    Concurrent ``reorder`` calls are not safe; callers must serialize them.
    """

    def __init__(self, blobs: BlobStore, state: KeyValueState, spread_count: int):
        """
        Initialize spread store.

        Args:
            blobs: Blob store holding the spread records
            state: Key-value state holding the metadata index
            spread_count: Number of content spreads in the book; page ranges
                          and reorder bounds depend on it
        """
        self.blobs = blobs
        self.state = state
        self.spread_count = spread_count

    # ------------------------------------------------------------------
    # Metadata index
    # ------------------------------------------------------------------

    def metadata(self) -> Dict[str, SpreadMeta]:
        """Current metadata index; malformed entries are skipped."""
        raw = self.state.get(METADATA_STATE_KEY) or {}
        if isinstance(raw, list):
            raw = {entry.get('key'): entry for entry in raw if isinstance(entry, dict)}

        index = {}
        for key, entry in raw.items():
            try:
                index[key] = SpreadMeta.from_dict(entry)
            except (KeyError, TypeError, ValueError, IndexError) as e:
                logger.warning("Skipping malformed metadata entry %s: %s", key, e)
        return index

    def list_saved(self) -> List[SpreadMeta]:
        """Saved spreads ordered by index, for the thumbnail strip."""
        return sorted(self.metadata().values(), key=lambda meta: meta.spread_index)

    def _write_metadata(self, index: Dict[str, SpreadMeta]) -> bool:
        ordered = sorted(index.values(), key=lambda meta: meta.spread_index)
        return self.state.set(METADATA_STATE_KEY, {meta.key: meta.to_dict() for meta in ordered})

    def resize(self, spread_count: int) -> bool:
        """
        Change the number of content spreads and recompute the page ranges
        recorded in the metadata index.

        Growing the book turns the old last spread (a single page) into a
        regular two-page spread.

        Returns:
            True if the metadata index was written
        """
        self.spread_count = spread_count
        index = self.metadata()
        for meta in index.values():
            if meta.spread_index <= spread_count:
                meta.page_range = page_range_for(meta.spread_index, spread_count)
        if not self._write_metadata(index):
            logger.warning("Metadata index not updated for %d spreads", spread_count)
            return False
        return True

    # ------------------------------------------------------------------
    # Single-spread operations
    # ------------------------------------------------------------------

    async def save(self, spread_index: int, objects: Iterable[DrawableObject]) -> bool:
        """
        Save the drawables of a spread, overwriting any previous record.

        Args:
            spread_index: Spread the drawables belong to
            objects: Drawables to store; markers are ignored

        Returns:
            True if the record was written
        """
        record = SpreadRecord(
            spread_index=spread_index,
            page_range=page_range_for(spread_index, self.spread_count),
            saved_at=_now_ms(),
            objects=[obj.to_dict() for obj in objects if isinstance(obj, DrawableObject)]
        )

        try:
            await self.blobs.put(SPREADS_COLLECTION, record.key, json.dumps(record.to_dict()))
        except StorageError as e:
            logger.error("Saving spread %d failed: %s", spread_index, e)
            return False

        index = self.metadata()
        index[record.key] = SpreadMeta(record.key, spread_index, record.page_range, record.saved_at)
        if not self._write_metadata(index):
            logger.warning("Spread %d saved but the metadata index was not updated", spread_index)
        logger.debug("Saved spread %d with %d object(s)", spread_index, len(record.objects))
        return True

    async def load(self, spread_index: int) -> Optional[SpreadRecord]:
        """
        Load the record of a spread.

        Returns:
            The record, or None if the spread was never saved or storage failed

        Raises:
            SerializationError: If the stored record is malformed
        """
        key = spread_key(spread_index)
        try:
            raw = await self.blobs.get(SPREADS_COLLECTION, key)
        except StorageError as e:
            logger.error("Loading spread %d failed: %s", spread_index, e)
            return None

        if raw is None:
            return None
        return self.decode(raw, key)

    @staticmethod
    def decode(raw, key: str = "") -> SpreadRecord:
        """
        Decode and validate a raw stored record.

        Raises:
            SerializationError: If the payload is not a valid spread record
        """
        try:
            if isinstance(raw, bytes):
                raw = raw.decode('utf-8')
            data = json.loads(raw)
        except (UnicodeDecodeError, ValueError) as e:
            raise SerializationError(f"Spread record {key} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise SerializationError(f"Spread record {key} is not a JSON object")

        record = SpreadRecord.from_dict(data)
        validation = BookValidator.validate_record(record)
        if not validation.is_valid:
            raise SerializationError(
                f"Spread record {key} is invalid: {'; '.join(validation.errors)}"
            )
        for warning in validation.warnings:
            logger.warning("Spread record %s: %s", key, warning)
        return record

    async def delete(self, spread_index: int) -> bool:
        """
        Delete a spread record and its metadata entry.

        Returns:
            True if storage accepted the delete (even if nothing was stored)
        """
        key = spread_key(spread_index)
        try:
            await self.blobs.delete(SPREADS_COLLECTION, key)
        except StorageError as e:
            logger.error("Deleting spread %d failed: %s", spread_index, e)
            return False

        index = self.metadata()
        if index.pop(key, None) is not None:
            self._write_metadata(index)
        return True

    async def prune_beyond(self, spread_count: int) -> int:
        """
        Remove records left over from spreads past the end of the book.

        Returns:
            Number of stale spreads removed
        """
        stale = {meta.spread_index for meta in self.metadata().values()
                 if meta.spread_index > spread_count}
        stale.add(spread_count + 1)

        removed = 0
        for spread_index in sorted(stale):
            key = spread_key(spread_index)
            try:
                deleted = await self.blobs.delete(SPREADS_COLLECTION, key)
            except StorageError as e:
                logger.warning("Could not prune %s: %s", key, e)
                continue
            index = self.metadata()
            had_meta = index.pop(key, None) is not None
            if had_meta:
                self._write_metadata(index)
            if deleted or had_meta:
                removed += 1

        if removed:
            logger.info("Pruned %d stale spread record(s)", removed)
        return removed

    # ------------------------------------------------------------------
    # Reorder
    # ------------------------------------------------------------------

    async def _read_raw(self, spread_index: int):
        return await self.blobs.get(SPREADS_COLLECTION, spread_key(spread_index))

    def _reindexed(self, raw, new_index: int) -> Tuple[object, Optional[int]]:
        """Rewrite a raw record for its new index; undecodable records move unchanged."""
        try:
            record = self.decode(raw, spread_key(new_index))
        except SerializationError as e:
            logger.warning("Moving undecodable record unchanged: %s", e)
            return raw, None

        record.spread_index = new_index
        record.page_range = page_range_for(new_index, self.spread_count)
        return json.dumps(record.to_dict()), record.saved_at

    async def reorder(self, from_index: int, to_index: int) -> bool:
        """
        Move a content spread to another position.

        All content records are read in parallel, the spread at ``from_index``
        is spliced into ``to_index``'s position, and every record whose
        position changed is rewritten under its new key. Positions without a
        record are deleted. The metadata index is rebuilt and written once at
        the end.

        Write failures are logged and the remaining writes still happen;
        nothing is rolled back.

        Returns:
            False if the request was rejected, a read failed, or any write failed
        """
        validation = BookValidator.validate_reorder(from_index, to_index, self.spread_count)
        if not validation.is_valid:
            logger.warning("Reorder %d -> %d ignored: %s", from_index, to_index,
                           "; ".join(validation.errors))
            return False

        indices = list(range(1, self.spread_count + 1))
        results = await asyncio.gather(
            *(self._read_raw(i) for i in indices), return_exceptions=True
        )
        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            logger.error("Reorder %d -> %d aborted, could not read records: %s",
                         from_index, to_index, failures[0])
            return False

        old_index = self.metadata()
        entries = [(i, raw) for i, raw in zip(indices, results)]
        moved = entries.pop(from_index - 1)
        entries.insert(to_index - 1, moved)

        low, high = min(from_index, to_index), max(from_index, to_index)
        new_index = {
            key: meta for key, meta in old_index.items()
            if meta.spread_index == 0
        }
        all_written = True

        for position, (original, raw) in enumerate(entries, start=1):
            key = spread_key(position)
            previous_meta = old_index.get(spread_key(original))

            if raw is None:
                if low <= position <= high:
                    try:
                        await self.blobs.delete(SPREADS_COLLECTION, key)
                    except StorageError as e:
                        logger.warning("Reorder could not delete %s: %s", key, e)
                        all_written = False
                continue

            saved_at = previous_meta.saved_at if previous_meta else None
            if low <= position <= high:
                payload, record_ts = self._reindexed(raw, position)
                try:
                    await self.blobs.put(SPREADS_COLLECTION, key, payload)
                except StorageError as e:
                    logger.warning("Reorder could not write %s: %s", key, e)
                    all_written = False
                    continue
                if saved_at is None:
                    saved_at = record_ts

            new_index[key] = SpreadMeta(
                key=key,
                spread_index=position,
                page_range=page_range_for(position, self.spread_count),
                saved_at=saved_at if saved_at is not None else _now_ms()
            )

        self._write_metadata(new_index)

        if all_written:
            logger.info("Moved spread %d to %d", from_index, to_index)
        else:
            logger.error("Reorder %d -> %d finished with write failures", from_index, to_index)
        return all_written
