"""
Photo Service - Uploaded photo slots and their persistence.

Uploaded photos are kept in a fixed list of slots. Each slot remembers the
blob-store key of the photo and, until storage pressure forces it out, an
inline copy of the bytes. The slot list is saved as one JSON blob in the
image collection; when that write hits the storage quota, inline copies are
dropped and the write is retried once.
"""

import itertools
import json
import logging
import time
from typing import List, Optional

from ..config import IMAGE_KEY_PREFIX, IMAGES_COLLECTION, PHOTO_SLOTS_KEY
from ..errors import QuotaExceededError, StorageError
from ..models import PhotoSlot
from .image_service import ImageService
from .storage_service import BlobStore

logger = logging.getLogger(__name__)


class PhotoService:
    """Manages photo slots, image blobs and the degraded-save fallback."""

    def __init__(self, blobs: BlobStore, image_service: Optional[ImageService] = None):
        self.blobs = blobs
        self.image_service = image_service or ImageService()
        self.slots: List[Optional[PhotoSlot]] = []
        self._counter = itertools.count(1)

    def _new_key(self) -> str:
        return f"{IMAGE_KEY_PREFIX}{int(time.time() * 1000)}_{next(self._counter)}"

    def ensure_slots(self, count: int):
        """Pad with empty slots or truncate so there are exactly ``count`` slots."""
        del self.slots[count:]
        while len(self.slots) < count:
            self.slots.append(None)

    def has_photos(self) -> bool:
        return any(slot is not None for slot in self.slots)

    def find(self, key: str) -> Optional[PhotoSlot]:
        for slot in self.slots:
            if slot is not None and slot.key == key:
                return slot
        return None

    async def add_photo(self, data: bytes, index: Optional[int] = None) -> PhotoSlot:
        """
        Prepare a photo, store its bytes and put it into a slot.

        The slot list itself is not saved; call ``save_state`` afterwards.

        Args:
            data: Raw uploaded file contents
            index: Slot to fill; defaults to the first empty slot (or a new one)

        Returns:
            The filled slot

        Raises:
            ValueError: If the data is not a readable image
        """
        prepared = self.image_service.prepare_upload(data)
        slot = PhotoSlot(self._new_key(), prepared.width, prepared.height, prepared.data)

        try:
            await self.blobs.put(IMAGES_COLLECTION, slot.key, prepared.data)
        except StorageError as e:
            # The inline copy still lets the photo be used this session
            logger.warning("Storing image blob %s failed: %s", slot.key, e)

        if index is None:
            index = next((i for i, s in enumerate(self.slots) if s is None), len(self.slots))
        self.ensure_slots(max(len(self.slots), index + 1))
        self.slots[index] = slot
        return slot

    def remove_photo(self, index: int) -> Optional[PhotoSlot]:
        """Remove a photo; later slots move up and an empty slot is appended."""
        if not 0 <= index < len(self.slots):
            return None
        removed = self.slots.pop(index)
        self.slots.append(None)
        return removed

    def move_photo(self, from_index: int, to_index: int) -> bool:
        count = len(self.slots)
        if not (0 <= from_index < count and 0 <= to_index < count) or from_index == to_index:
            return False
        slot = self.slots.pop(from_index)
        self.slots.insert(to_index, slot)
        return True

    async def image_bytes(self, key: str) -> Optional[bytes]:
        """Bytes of a stored photo, falling back to the inline copy."""
        try:
            data = await self.blobs.get(IMAGES_COLLECTION, key)
        except StorageError as e:
            logger.warning("Reading image blob %s failed: %s", key, e)
            data = None

        if isinstance(data, bytes):
            return data
        slot = self.find(key)
        return slot.data if slot is not None else None

    def _payload(self) -> str:
        return json.dumps([slot.to_dict() if slot else None for slot in self.slots])

    def strip_inline_data(self) -> int:
        """
        Empty every slot that still carries inline image bytes.

        Returns:
            Number of slots emptied
        """
        stripped = 0
        for i, slot in enumerate(self.slots):
            if slot is not None and slot.data:
                self.slots[i] = None
                stripped += 1
        return stripped

    async def save_state(self) -> bool:
        """
        Persist the slot list.

        On a quota error, slots with inline data are emptied and the write is
        retried once.

        Returns:
            True if the slot list was written, False if the save was abandoned
        """
        try:
            await self.blobs.put(IMAGES_COLLECTION, PHOTO_SLOTS_KEY, self._payload())
            return True

        except QuotaExceededError:
            stripped = self.strip_inline_data()
            logger.warning("Storage quota exceeded; retrying without %d inline photo(s)", stripped)

        except StorageError as e:
            logger.error("Saving photo slots failed: %s", e)
            return False

        try:
            await self.blobs.put(IMAGES_COLLECTION, PHOTO_SLOTS_KEY, self._payload())
            return True

        except StorageError as e:
            logger.error("Failed to save photo slots even after stripping images: %s", e)
            return False

    async def load_state(self) -> bool:
        """
        Restore the slot list from storage.

        Returns:
            True if a saved slot list was found and decoded
        """
        try:
            raw = await self.blobs.get(IMAGES_COLLECTION, PHOTO_SLOTS_KEY)
        except StorageError as e:
            logger.error("Loading photo slots failed: %s", e)
            return False

        if raw is None:
            return False

        try:
            entries = json.loads(raw)
            self.slots = [PhotoSlot.from_dict(entry) if entry else None for entry in entries]
            return True

        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring malformed photo slots: %s", e)
            return False
