"""
Spread Navigator - Moves between spreads and keeps them persisted.

The navigator owns the "which spread is on screen" state. Leaving a spread
saves it first, then the layout is recomputed for the target spread and its
saved objects are loaded (or the canvas is cleared if nothing was saved).
It also runs the debounced autosave, reorders spreads, grows the book and
applies zoom, viewport and theme changes.

Nothing here raises storage errors to the caller: failures are logged and
turned into user-visible notices.
"""

import asyncio
import logging
from typing import List, Optional

from ..config import (
    AUTOSAVE_DELAY, COVER_SPREAD, DEFAULT_ZOOM, MAX_TOTAL_PAGES, THEMES, ZOOM_STEP, get_theme,
)
from ..errors import SerializationError
from ..models import (
    EditorPreferences, LayerItem, Notice, Page, Spread, SpreadLayout, Viewport, spread_count_for,
)
from ..scene import Scene
from ..validators import BookValidator
from .constraint_service import ConstraintService
from .geometry_service import GeometryService, clamp_zoom
from .history_service import HistoryStack
from .layer_service import LayerService
from .preferences_service import PreferencesService
from .spread_store import SpreadStore

logger = logging.getLogger(__name__)


class SpreadNavigator:
    """
    State machine over Cover (0) and Content(1..spread_count).

    Attributes:
        current_spread: Index of the spread on screen
        layout: Page layout of the current spread
        layers: Layer list of the current spread
        notices: User-visible failures not yet shown
    """

    def __init__(
        self,
        scene: Scene,
        store: SpreadStore,
        history: HistoryStack,
        preferences_service: PreferencesService,
        viewport: Viewport,
        preferences: Optional[EditorPreferences] = None,
        autosave_delay: float = AUTOSAVE_DELAY
    ):
        preferences = preferences or EditorPreferences()
        self.scene = scene
        self.store = store
        self.history = history
        self.preferences_service = preferences_service
        self.viewport = viewport
        self.zoom = preferences.zoom
        self.theme = preferences.theme
        self.total_pages = preferences.total_pages
        self.autosave_delay = autosave_delay

        self.current_spread = COVER_SPREAD
        self.layout: Optional[SpreadLayout] = None
        self.layers: List[LayerItem] = []
        self.notices: List[Notice] = []

        self._autosave_handle: Optional[asyncio.TimerHandle] = None
        self._autosave_task: Optional[asyncio.Task] = None

        self.store.spread_count = self.spread_count

    # ------------------------------------------------------------------
    # Derived state
    # ------------------------------------------------------------------

    @property
    def spread_count(self) -> int:
        return spread_count_for(self.total_pages)

    @property
    def spread(self) -> Spread:
        return Spread(self.current_spread, self.spread_count)

    @property
    def pages(self) -> List[Page]:
        return self.layout.pages if self.layout else []

    def page_label(self) -> str:
        """Label for the current spread, e.g. 'Cover', 'Page 1' or 'Pages 2-3'."""
        page_range = self.spread.page_range
        if page_range is None:
            return "Cover"
        first, last = page_range
        if first == last:
            return f"Page {first}"
        return f"Pages {first}-{last}"

    def notify(self, level: str, message: str):
        self.notices.append(Notice(level, message))

    def drain_notices(self) -> List[Notice]:
        notices, self.notices = self.notices, []
        return notices

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def render(self):
        """Recompute the layout, replace the page markers and reclip every drawable."""
        self.layout = GeometryService.compute_layout(
            self.viewport, self.zoom, self.spread, get_theme(self.theme)
        )
        self.scene.replace_markers(self.layout.markers)
        for obj in self.scene.objects():
            ConstraintService.reclip(obj, self.layout.pages)
        self.refresh_layers()

    def refresh_layers(self):
        self.layers = LayerService.layers(self.scene, self.pages)

    def resize(self, width: int, height: int):
        self.viewport = Viewport(width, height)
        self.render()

    def set_zoom(self, zoom: float) -> float:
        """Set the zoom factor, clamped to 0.5-2.0."""
        self.zoom = round(clamp_zoom(zoom), 2)
        self.render()
        self._save_preferences()
        return self.zoom

    def zoom_in(self) -> float:
        return self.set_zoom(self.zoom + ZOOM_STEP)

    def zoom_out(self) -> float:
        return self.set_zoom(self.zoom - ZOOM_STEP)

    def reset_zoom(self) -> float:
        return self.set_zoom(DEFAULT_ZOOM)

    def set_theme(self, name: str):
        if name not in THEMES:
            raise ValueError(f"Unknown theme: '{name}'")
        self.theme = name
        self.render()
        self._save_preferences()

    def _save_preferences(self):
        preferences = EditorPreferences(
            zoom=self.zoom, theme=self.theme, total_pages=self.total_pages
        )
        if not self.preferences_service.save(preferences):
            logger.warning("Preferences were not saved")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save_current(self) -> bool:
        """Save the spread on screen; a failure becomes a notice."""
        saved = await self.store.save(self.current_spread, self.scene.objects())
        if not saved:
            self.notify('error', f"Spread {self.current_spread} could not be saved")
        return saved

    async def _load_current(self):
        self.scene.clear_objects()

        try:
            record = await self.store.load(self.current_spread)
            objects = record.drawables() if record is not None else []
        except SerializationError as e:
            logger.error("Spread %d is unreadable, opening it empty: %s", self.current_spread, e)
            self.notify('warning', f"Spread {self.current_spread} could not be read and was opened empty")
            objects = []

        for obj in objects:
            self.scene.add(obj)
            ConstraintService.place(obj, self.pages)

        self.history.reset(self.scene.snapshot())
        self.refresh_layers()

    async def start(self, spread_index: int = COVER_SPREAD) -> int:
        """Show the first spread of a session without saving anything."""
        return await self.goto_spread(spread_index, save_current=False)

    async def goto_spread(self, target: int, save_current: bool = True) -> int:
        """
        Navigate to another spread.

        The current spread is saved first (a failure does not stop navigation),
        then the target's layout is computed and its saved objects loaded. If
        the target was never saved, the canvas is left empty.

        Args:
            target: Spread to show, clamped to [0, spread_count]
            save_current: False when the scene is already persisted or stale

        Returns:
            The index actually shown
        """
        clamped = max(COVER_SPREAD, min(target, self.spread_count))

        if save_current:
            self.cancel_autosave()
            await self.wait_for_autosave()
            if not await self.save_current():
                logger.warning("Save before leaving spread %d failed; navigating anyway",
                               self.current_spread)

        self.current_spread = clamped
        self.render()
        await self._load_current()
        logger.debug("Now showing spread %d (%s)", clamped, self.page_label())
        return clamped

    async def next_spread(self) -> int:
        return await self.goto_spread(self.current_spread + 1)

    async def previous_spread(self) -> int:
        return await self.goto_spread(self.current_spread - 1)

    async def reorder(self, from_index: int, to_index: int) -> bool:
        """
        Move a content spread and show it at its new position.

        The cover and the first content spread never move; such requests are
        ignored. The current spread is saved before records are rewritten.

        Returns:
            True if every record was rewritten
        """
        validation = BookValidator.validate_reorder(from_index, to_index, self.spread_count)
        if not validation.is_valid:
            logger.info("Reorder %d -> %d ignored: %s", from_index, to_index, validation.get_summary())
            return False

        self.cancel_autosave()
        await self.wait_for_autosave()
        await self.save_current()

        reordered = await self.store.reorder(from_index, to_index)
        if not reordered:
            self.notify('error', "Spreads could not be reordered")

        # The scene on screen is stale now; reload without saving it again
        await self.goto_spread(to_index, save_current=False)
        return reordered

    def add_spread(self) -> bool:
        """
        Add two pages to the end of the book.

        Returns:
            False if the book already has the maximum number of pages
        """
        if self.total_pages + 2 > MAX_TOTAL_PAGES:
            self.notify('info', f"Maximum number of spreads reached ({MAX_TOTAL_PAGES // 2})")
            return False

        self.total_pages += 2
        self.store.resize(self.spread_count)
        self._save_preferences()
        self.render()
        logger.info("Book now has %d pages", self.total_pages)
        return True

    # ------------------------------------------------------------------
    # Autosave
    # ------------------------------------------------------------------

    @property
    def autosave_pending(self) -> bool:
        return self._autosave_handle is not None

    def schedule_autosave(self):
        """
        (Re)arm the autosave timer.

        Each call cancels the previous timer, so only the last mutation of a
        burst triggers a save.
        """
        self.cancel_autosave()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; autosave skipped")
            return
        self._autosave_handle = loop.call_later(self.autosave_delay, self._fire_autosave)

    def cancel_autosave(self):
        if self._autosave_handle is not None:
            self._autosave_handle.cancel()
            self._autosave_handle = None

    def _fire_autosave(self):
        self._autosave_handle = None
        self._autosave_task = asyncio.ensure_future(self.save_current())
        self._autosave_task.add_done_callback(self._autosave_done)

    def _autosave_done(self, task: asyncio.Future):
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Autosave of spread %d failed: %s", self.current_spread, error)
            self.notify('error', f"Spread {self.current_spread} could not be autosaved")

    async def wait_for_autosave(self) -> Optional[bool]:
        """
        Wait for an autosave already in flight.

        Returns:
            Result of that save, or None if none was running or it failed
        """
        task, self._autosave_task = self._autosave_task, None
        if task is None:
            return None
        try:
            return await task
        except Exception:
            # Already logged and reported by _autosave_done
            return None

    async def flush_autosave(self) -> Optional[bool]:
        """
        Save now if an autosave is pending, and wait for one in flight.

        Returns:
            Result of the save, or None if nothing needed saving
        """
        result = await self.wait_for_autosave()
        if self.autosave_pending:
            self.cancel_autosave()
            result = await self.save_current()
        return result
