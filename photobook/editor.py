"""
Editor - Command stream over the spread editor.

UI actions are expressed as small command dataclasses and consumed by
``Editor.dispatch``. The editor owns the scene and wires the services
together: constraint after every move, scale or add, an undo snapshot after
every committed mutation, and a debounced autosave.
"""

import itertools
import logging
import time
from dataclasses import dataclass
from typing import Optional

from .config import (
    AUTOSAVE_DELAY, COVER_SPREAD, DEFAULT_FONT_SIZE, DEFAULT_IMAGE_SCALE, DEFAULT_TEXT,
    HISTORY_LIMIT, OBJECT_ID_PREFIX, TEXT_INSET, get_theme,
)
from .errors import SerializationError
from .models import (
    EditorStatus, ImageObject, PageSide, TextObject, Viewport, spread_count_for,
)
from .scene import Scene
from .services.constraint_service import ConstraintService
from .services.history_service import HistoryStack
from .services.layer_service import LayerService
from .services.navigator import SpreadNavigator
from .services.photo_service import PhotoService
from .services.preferences_service import PreferencesService
from .services.spread_store import SpreadStore
from .services.storage_service import BlobStore, KeyValueState
from .validators import BookValidator

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Commands
# ----------------------------------------------------------------------

@dataclass
class AddImage:
    """Upload a photo and place it on the current spread."""
    data: bytes
    x: Optional[float] = None
    y: Optional[float] = None


@dataclass
class RemovePhoto:
    """Drop a photo from the slot panel; later photos shift up."""
    index: int


@dataclass
class MovePhoto:
    from_index: int
    to_index: int


@dataclass
class AddText:
    text: str = DEFAULT_TEXT
    x: Optional[float] = None
    y: Optional[float] = None
    font_size: int = DEFAULT_FONT_SIZE


@dataclass
class MoveObject:
    object_id: str
    x: float
    y: float


@dataclass
class ScaleObject:
    """Rescale a drawable; ``uniform`` mirrors the aspect-lock modifier key."""
    object_id: str
    scale_x: float
    scale_y: float
    uniform: bool = False


@dataclass
class RemoveObject:
    object_id: str


@dataclass
class ClearSpread:
    pass


@dataclass
class SetTextColor:
    object_id: str
    color: str


@dataclass
class MoveLayer:
    object_id: str
    index: int


@dataclass
class Undo:
    pass


@dataclass
class Redo:
    pass


@dataclass
class SaveSpread:
    pass


@dataclass
class Navigate:
    spread_index: int


@dataclass
class NextSpread:
    pass


@dataclass
class PreviousSpread:
    pass


@dataclass
class ReorderSpreads:
    from_index: int
    to_index: int


@dataclass
class AddSpread:
    pass


@dataclass
class SetZoom:
    zoom: float


@dataclass
class ZoomIn:
    pass


@dataclass
class ZoomOut:
    pass


@dataclass
class ResetZoom:
    pass


@dataclass
class Resize:
    width: int
    height: int


@dataclass
class SetTheme:
    name: str


# ----------------------------------------------------------------------
# Editor
# ----------------------------------------------------------------------

class Editor:
    """
    Spread editor session.

    Create one with ``Editor.open`` so stored photos, preferences and the
    first spread are loaded before commands are dispatched.
    """

    def __init__(
        self,
        blobs: BlobStore,
        state: KeyValueState,
        viewport: Viewport,
        autosave_delay: float = AUTOSAVE_DELAY,
        history_limit: int = HISTORY_LIMIT
    ):
        self.scene = Scene()
        self.history = HistoryStack(history_limit)
        self.preferences_service = PreferencesService(state)
        preferences = self.preferences_service.load()

        self.store = SpreadStore(blobs, state, spread_count_for(preferences.total_pages))
        self.photos = PhotoService(blobs)
        self.navigator = SpreadNavigator(
            self.scene, self.store, self.history, self.preferences_service,
            viewport, preferences, autosave_delay
        )
        self._ids = itertools.count(1)

        self._handlers = {
            AddImage: self._add_image,
            RemovePhoto: self._remove_photo,
            MovePhoto: self._move_photo,
            AddText: self._add_text,
            MoveObject: self._move_object,
            ScaleObject: self._scale_object,
            RemoveObject: self._remove_object,
            ClearSpread: self._clear_spread,
            SetTextColor: self._set_text_color,
            MoveLayer: self._move_layer,
            Undo: self._undo,
            Redo: self._redo,
            SaveSpread: self._save_spread,
            Navigate: self._navigate,
            NextSpread: self._next_spread,
            PreviousSpread: self._previous_spread,
            ReorderSpreads: self._reorder,
            AddSpread: self._add_spread,
            SetZoom: self._set_zoom,
            ZoomIn: self._zoom_in,
            ZoomOut: self._zoom_out,
            ResetZoom: self._reset_zoom,
            Resize: self._resize,
            SetTheme: self._set_theme,
        }

    @classmethod
    async def open(
        cls,
        blobs: BlobStore,
        state: KeyValueState,
        viewport: Viewport,
        spread_index: int = COVER_SPREAD,
        **kwargs
    ) -> 'Editor':
        """
        Start an editing session.

        Photo slots are restored, records beyond the end of the book are
        pruned and the requested spread (the cover by default) is shown.
        """
        editor = cls(blobs, state, viewport, **kwargs)
        await editor.photos.load_state()
        await editor.store.prune_beyond(editor.navigator.spread_count)
        await editor.navigator.start(spread_index)
        return editor

    async def close(self) -> bool:
        """
        Cancel any pending autosave, wait for one already running and save
        the current spread.
        """
        self.navigator.cancel_autosave()
        await self.navigator.wait_for_autosave()
        return await self.navigator.save_current()

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------

    @property
    def current_spread(self) -> int:
        return self.navigator.current_spread

    @property
    def notices(self):
        return self.navigator.notices

    def drain_notices(self):
        return self.navigator.drain_notices()

    def status(self) -> EditorStatus:
        nav = self.navigator
        return EditorStatus(
            spread_index=nav.current_spread,
            spread_count=nav.spread_count,
            page_label=nav.page_label(),
            zoom=nav.zoom,
            theme=nav.theme,
            layers=list(nav.layers),
            saved_spreads=self.store.list_saved(),
            can_undo=self.history.can_undo(),
            can_redo=self.history.can_redo()
        )

    async def dispatch(self, command):
        """
        Apply a command and return its command-specific result.

        Raises:
            TypeError: If the command type is unknown
        """
        handler = self._handlers.get(type(command))
        if handler is None:
            raise TypeError(f"Unknown command: {command!r}")
        return await handler(command)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _new_object_id(self) -> str:
        return f"{OBJECT_ID_PREFIX}{int(time.time() * 1000)}_{next(self._ids)}"

    def _commit(self):
        self.history.push(self.scene.snapshot())
        self.navigator.refresh_layers()
        self.navigator.schedule_autosave()

    def _place_new(self, obj, x: Optional[float], y: Optional[float]):
        if x is not None and y is not None:
            obj.move_to(x, y)
        self.scene.add(obj)
        ConstraintService.place(obj, self.navigator.pages)
        self._commit()

    def _right_page(self):
        return self.navigator.layout.page(PageSide.RIGHT)

    def _restore(self, snapshot: str) -> bool:
        try:
            self.scene.restore(snapshot)
        except SerializationError as e:
            logger.error("History snapshot could not be restored: %s", e)
            return False
        for obj in self.scene.objects():
            ConstraintService.reclip(obj, self.navigator.pages)
        self.navigator.refresh_layers()
        self.navigator.schedule_autosave()
        return True

    # ------------------------------------------------------------------
    # Object commands
    # ------------------------------------------------------------------

    async def _add_image(self, command: AddImage) -> Optional[str]:
        try:
            slot = await self.photos.add_photo(command.data)
        except ValueError as e:
            logger.warning("Rejected upload: %s", e)
            self.navigator.notify('warning', "The file is not a supported image")
            return None

        await self._save_photos()

        image = ImageObject(
            id=self._new_object_id(),
            store_key=slot.key,
            width=slot.width,
            height=slot.height,
            scale_x=DEFAULT_IMAGE_SCALE,
            scale_y=DEFAULT_IMAGE_SCALE
        )

        if command.x is None or command.y is None:
            if self.navigator.spread.has_locked_page:
                ConstraintService.center_on(image, self._right_page())
            else:
                box = image.bounding_box()
                viewport = self.navigator.viewport
                image.move_to(viewport.width / 2 - box.width / 2, viewport.height / 2 - box.height / 2)

        self._place_new(image, command.x, command.y)
        logger.debug("Added image %s (%s)", image.id, slot.key)
        return image.id

    async def _remove_photo(self, command: RemovePhoto) -> bool:
        slot = self.photos.remove_photo(command.index)
        if slot is None:
            return False
        await self._save_photos()
        return True

    async def _move_photo(self, command: MovePhoto) -> bool:
        moved = self.photos.move_photo(command.from_index, command.to_index)
        if moved:
            await self._save_photos()
        return moved

    async def _save_photos(self):
        if not await self.photos.save_state():
            self.navigator.notify('error', "Photo could not be saved; storage may be full")

    async def _add_text(self, command: AddText) -> str:
        text = TextObject(
            id=self._new_object_id(),
            text=command.text,
            font_size=command.font_size,
            fill=get_theme(self.navigator.theme).text_fill
        )

        if command.x is None or command.y is None:
            if self.navigator.spread.has_locked_page:
                page = self._right_page().rect
                text.move_to(page.x + TEXT_INSET, page.y + TEXT_INSET)
            else:
                viewport = self.navigator.viewport
                text.move_to(viewport.width / 2 - 100, viewport.height / 2 - 10)

        self._place_new(text, command.x, command.y)
        return text.id

    async def _move_object(self, command: MoveObject) -> bool:
        obj = self.scene.find(command.object_id)
        if obj is None:
            return False
        obj.move_to(command.x, command.y)
        ConstraintService.place(obj, self.navigator.pages)
        self._commit()
        return True

    async def _scale_object(self, command: ScaleObject) -> bool:
        obj = self.scene.find(command.object_id)
        if obj is None:
            return False
        ConstraintService.apply_scale(obj, command.scale_x, command.scale_y, command.uniform)
        ConstraintService.place(obj, self.navigator.pages)
        self._commit()
        return True

    async def _remove_object(self, command: RemoveObject) -> bool:
        obj = self.scene.find(command.object_id)
        if obj is None:
            return False
        self.scene.remove(obj)
        self._commit()
        return True

    async def _clear_spread(self, command: ClearSpread) -> int:
        removed = self.scene.clear_objects()
        if removed:
            self._commit()
        return len(removed)

    async def _set_text_color(self, command: SetTextColor) -> bool:
        obj = self.scene.find(command.object_id)
        if not isinstance(obj, TextObject):
            self.navigator.notify('info', "Select a text object to change its colour")
            return False
        validation = BookValidator.validate_text_color(command.color)
        if not validation.is_valid:
            logger.info("Rejected text colour: %s", validation.get_summary())
            self.navigator.notify('warning', f"{command.color!r} is not a valid colour")
            return False
        for warning in validation.warnings:
            logger.debug(warning)
        obj.fill = command.color
        self._commit()
        return True

    async def _move_layer(self, command: MoveLayer) -> bool:
        moved = LayerService.move_to_index(self.scene, command.object_id, command.index)
        if moved:
            self._commit()
        return moved

    async def _undo(self, command: Undo) -> bool:
        snapshot = self.history.undo()
        return snapshot is not None and self._restore(snapshot)

    async def _redo(self, command: Redo) -> bool:
        snapshot = self.history.redo()
        return snapshot is not None and self._restore(snapshot)

    # ------------------------------------------------------------------
    # Navigation and book commands
    # ------------------------------------------------------------------

    async def _save_spread(self, command: SaveSpread) -> bool:
        self.navigator.cancel_autosave()
        return await self.navigator.save_current()

    async def _navigate(self, command: Navigate) -> int:
        return await self.navigator.goto_spread(command.spread_index)

    async def _next_spread(self, command: NextSpread) -> int:
        return await self.navigator.next_spread()

    async def _previous_spread(self, command: PreviousSpread) -> int:
        return await self.navigator.previous_spread()

    async def _reorder(self, command: ReorderSpreads) -> bool:
        return await self.navigator.reorder(command.from_index, command.to_index)

    async def _add_spread(self, command: AddSpread) -> bool:
        return self.navigator.add_spread()

    async def _set_zoom(self, command: SetZoom) -> float:
        return self.navigator.set_zoom(command.zoom)

    async def _zoom_in(self, command: ZoomIn) -> float:
        return self.navigator.zoom_in()

    async def _zoom_out(self, command: ZoomOut) -> float:
        return self.navigator.zoom_out()

    async def _reset_zoom(self, command: ResetZoom) -> float:
        return self.navigator.reset_zoom()

    async def _resize(self, command: Resize) -> Viewport:
        self.navigator.resize(command.width, command.height)
        return self.navigator.viewport

    async def _set_theme(self, command: SetTheme) -> str:
        self.navigator.set_theme(command.name)
        return self.navigator.theme
