"""
Constraint Service - Keeps drawables confined to a single page.

Every drawable belongs to the page under the centre of its bounding box.
After a move, scale, add or load the drawable is clamped inside that page
and clipped to it, so nothing ever spills over the gutter or off the spread.
The locked left page of the first content spread never owns a drawable.
"""

import logging
from dataclasses import replace
from typing import List, Optional

from ..models import DrawableObject, Page, PageSide

logger = logging.getLogger(__name__)

ANCHOR_TOLERANCE = 1e-6


class ConstraintService:
    """Service for assigning, clamping and clipping drawables to pages."""

    @staticmethod
    def owner_page_for(obj: DrawableObject, pages: List[Page]) -> Optional[Page]:
        """
        Find the page a drawable belongs to.

        Args:
            obj: Drawable to place
            pages: Pages of the spread currently shown

        Returns:
            The page whose horizontal span contains the drawable's centre,
            redirected to the right page if that page is locked. When the
            centre falls in the gutter or off the spread, the nearest unlocked
            page. None if there are no pages.
        """
        if not pages:
            return None

        center_x = obj.bounding_box().center_x
        page = next((p for p in pages if p.rect.spans_x(center_x)), None)

        if page is not None and page.locked:
            sibling = next(
                (p for p in pages if p.side == PageSide.RIGHT and not p.locked), None
            )
            page = sibling

        if page is None:
            candidates = [p for p in pages if not p.locked]
            if not candidates:
                logger.warning("No unlocked page available for object %s", obj.id)
                return None
            page = min(candidates, key=lambda p: _horizontal_distance(p, center_x))

        return page

    @classmethod
    def constrain(cls, obj: DrawableObject, pages: List[Page]) -> Optional[Page]:
        """
        Clamp a drawable so its bounding box stays inside its owner page.

        A drawable larger than the page is anchored at the page origin and
        keeps that page until it is moved off the origin.

        Returns:
            The owner page, or None if the drawable could not be placed
        """
        page = cls.page_of(obj, pages)
        if page is None:
            return None

        box = obj.bounding_box()
        rect = page.rect
        max_left = rect.right - box.width
        max_top = rect.bottom - box.height
        new_left = min(max(box.x, rect.x), max(rect.x, max_left))
        new_top = min(max(box.y, rect.y), max(rect.y, max_top))
        obj.move_to(new_left, new_top)
        return page

    @staticmethod
    def anchored_page(obj: DrawableObject, pages: List[Page]) -> Optional[Page]:
        """
        Find the unlocked page an oversized drawable was anchored to.

        A drawable wider than its page sits at that page's origin, so its
        centre may lie over the other page or off the spread.
        """
        box = obj.bounding_box()
        for page in pages:
            if page.locked or box.width <= page.rect.width:
                continue
            if abs(box.x - page.rect.x) < ANCHOR_TOLERANCE:
                return page
        return None

    @classmethod
    def page_of(cls, obj: DrawableObject, pages: List[Page]) -> Optional[Page]:
        """The page a drawable already placed on the spread belongs to."""
        page = cls.anchored_page(obj, pages)
        return page if page is not None else cls.owner_page_for(obj, pages)

    @classmethod
    def reclip(
        cls,
        obj: DrawableObject,
        pages: List[Page],
        page: Optional[Page] = None
    ) -> Optional[Page]:
        """
        Clip a drawable to a page, in absolute canvas coordinates.

        Args:
            page: Owner page when the caller already knows it; otherwise the
                  page is worked out from the drawable's position
        """
        if page is None:
            page = cls.page_of(obj, pages)
        obj.clip = replace(page.rect) if page is not None else None
        return page

    @classmethod
    def place(cls, obj: DrawableObject, pages: List[Page]) -> Optional[Page]:
        """Constrain then reclip; used after every move, scale, add or load."""
        page = cls.constrain(obj, pages)
        cls.reclip(obj, pages, page)
        return page

    @staticmethod
    def apply_scale(obj: DrawableObject, scale_x: float, scale_y: float, uniform: bool = False):
        """
        Set a drawable's scale.

        Args:
            uniform: True while the aspect-lock modifier is held; forces
                     scale_y to follow scale_x
        """
        if scale_x <= 0 or scale_y <= 0:
            raise ValueError(f"Scale must be positive, got ({scale_x}, {scale_y})")
        obj.scale_x = scale_x
        obj.scale_y = scale_x if uniform else scale_y

    @staticmethod
    def center_on(obj: DrawableObject, page: Page):
        """Move a drawable so it is centred on a page."""
        box = obj.bounding_box()
        obj.move_to(
            page.rect.center_x - box.width / 2,
            page.rect.center_y - box.height / 2
        )


def _horizontal_distance(page: Page, x: float) -> float:
    if page.rect.spans_x(x):
        return 0.0
    return min(abs(page.rect.x - x), abs(page.rect.right - x))
