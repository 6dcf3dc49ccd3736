"""
Page Geometry Service - Computes page rectangles for a spread.

Pages are laid out at A4 proportions, scaled to fit two pages plus a gutter
in the viewport width and one page in the height left over after the
thumbnail strip. The result also carries the layout markers (page
backgrounds, cover spine, page labels) that the scene draws beneath user
objects.
"""

import math
from typing import List, Optional, Tuple

from ..config import (
    A4_MM, COLOR_LOCK_LABEL, COLOR_LOCKED_PAGE, COLOR_PAGE_FILL, GUTTER_RATIO,
    LABEL_OFFSET, LOCK_NOTICE, MAX_ZOOM, MIN_AVAILABLE_HEIGHT, MIN_CONTENT_GUTTER,
    MIN_FIT_SCALE, MIN_GUTTER, MIN_PAGE_HEIGHT, MIN_PAGE_TOP, MIN_PAGE_WIDTH,
    MIN_SPINE_WIDTH, MIN_ZOOM, PAGE_SCALE_DESKTOP, PAGE_SCALE_MOBILE, PX_PER_MM,
    SPINE_RATIO, THUMBNAILS_HEIGHT_DESKTOP, THUMBNAILS_HEIGHT_MOBILE, VIEWPORT_PADDING,
    UITheme, get_theme,
)
from ..models import (
    CoverRole, Marker, MarkerKind, Page, PageSide, Rect, Spread, SpreadLayout, Viewport,
)


def a4_pixel_size() -> Tuple[int, int]:
    """A4 page size in pixels at 96 dpi (794 x 1123)."""
    return round(A4_MM[0] * PX_PER_MM), round(A4_MM[1] * PX_PER_MM)


def clamp_zoom(zoom: float) -> float:
    return max(MIN_ZOOM, min(MAX_ZOOM, zoom))


class GeometryService:
    """
    Service for computing spread layouts.

    The service is stateless; call ``compute_layout`` again whenever the
    viewport, zoom, theme or current spread changes.
    """

    @staticmethod
    def gutter_base(viewport: Viewport) -> int:
        return max(MIN_GUTTER, math.floor(viewport.width * GUTTER_RATIO))

    @staticmethod
    def thumbnails_height(viewport: Viewport) -> int:
        return THUMBNAILS_HEIGHT_MOBILE if viewport.is_mobile else THUMBNAILS_HEIGHT_DESKTOP

    @classmethod
    def fit_scale(cls, viewport: Viewport) -> float:
        """
        Largest uniform scale at which two A4 pages and a gutter fit the width
        and one page fits the height budget.
        """
        a4_width, a4_height = a4_pixel_size()
        pad = VIEWPORT_PADDING
        by_width = (viewport.width - pad * 2 - cls.gutter_base(viewport)) / (2 * a4_width)
        by_height = (viewport.height - pad * 2 - cls.thumbnails_height(viewport)) / a4_height
        return max(MIN_FIT_SCALE, min(by_width, by_height))

    @classmethod
    def page_size(cls, viewport: Viewport, zoom: float) -> Tuple[int, int]:
        """Page size in pixels after the base scale and zoom are applied."""
        a4_width, a4_height = a4_pixel_size()
        page_scale = PAGE_SCALE_MOBILE if viewport.is_mobile else PAGE_SCALE_DESKTOP
        scale = cls.fit_scale(viewport) * page_scale * clamp_zoom(zoom)
        return (
            max(MIN_PAGE_WIDTH, math.floor(a4_width * scale)),
            max(MIN_PAGE_HEIGHT, math.floor(a4_height * scale))
        )

    @classmethod
    def compute_layout(
        cls,
        viewport: Viewport,
        zoom: float,
        spread: Spread,
        theme: Optional[UITheme] = None
    ) -> SpreadLayout:
        """
        Compute the page rectangles and markers for a spread.

        Args:
            viewport: Visible canvas size
            zoom: Zoom factor, clamped to 0.5-2.0
            spread: Spread being shown (cover, first content spread or other)
            theme: Theme used for strokes and labels (light if omitted)

        Returns:
            SpreadLayout with left/right pages, gutter, spine and markers
        """
        theme = theme or get_theme('light')
        page_width, page_height = cls.page_size(viewport, zoom)

        base = cls.gutter_base(viewport)
        gutter = base if spread.is_cover else max(MIN_CONTENT_GUTTER, math.floor(base / 2))

        left_x = (viewport.width - (page_width * 2 + gutter)) / 2
        right_x = left_x + page_width + gutter

        available_height = max(
            MIN_AVAILABLE_HEIGHT,
            viewport.height - cls.thumbnails_height(viewport) - VIEWPORT_PADDING
        )
        top = max(MIN_PAGE_TOP, math.floor((available_height - page_height) / 2))

        left_rect = Rect(left_x, top, page_width, page_height)
        right_rect = Rect(right_x, top, page_width, page_height)

        if spread.is_cover:
            pages = [
                Page(PageSide.LEFT, left_rect, cover_role=CoverRole.BACK),
                Page(PageSide.RIGHT, right_rect, cover_role=CoverRole.FRONT),
            ]
        else:
            first, last = spread.page_range
            if spread.has_locked_page:
                left_number, right_number = None, first
            elif first == last:
                # Last spread: only the right page carries a number
                left_number, right_number = None, first
            else:
                left_number, right_number = first, last
            pages = [
                Page(PageSide.LEFT, left_rect, locked=spread.has_locked_page,
                     page_number=left_number),
                Page(PageSide.RIGHT, right_rect, page_number=right_number),
            ]

        spine = None
        if spread.is_cover:
            spine_width = max(MIN_SPINE_WIDTH, round(page_width * SPINE_RATIO))
            spine_center = (left_x + page_width + right_x) / 2
            spine = Rect(spine_center - spine_width / 2, top, spine_width, page_height)

        layout = SpreadLayout(
            spread=spread,
            pages=pages,
            gutter=gutter,
            page_width=page_width,
            page_height=page_height,
            spine=spine
        )
        layout.markers = cls.build_markers(layout, theme, show_labels=not viewport.is_mobile)
        return layout

    @staticmethod
    def build_markers(layout: SpreadLayout, theme: UITheme, show_labels: bool = True) -> List[Marker]:
        """Scene markers for a layout: page backgrounds, spine and labels."""
        markers = []
        for page in layout.pages:
            markers.append(Marker(
                name=page.marker_name,
                kind=MarkerKind.PAGE,
                rect=page.rect,
                fill=COLOR_LOCKED_PAGE if page.locked else COLOR_PAGE_FILL,
                stroke=theme.page_stroke
            ))

        if layout.spine is not None:
            markers.append(Marker(
                name='cover-spine',
                kind=MarkerKind.SPINE,
                rect=layout.spine,
                fill=COLOR_LOCKED_PAGE
            ))

        for page in layout.pages:
            if page.locked:
                font_size = max(12, round(page.rect.width * 0.06))
                markers.append(Marker(
                    name=f"locked-{page.side.value}-label",
                    kind=MarkerKind.LOCK_LABEL,
                    rect=page.rect,
                    fill=COLOR_LOCK_LABEL,
                    text=LOCK_NOTICE,
                    font_size=font_size
                ))

        if show_labels:
            for page in layout.pages:
                if page.page_number is None:
                    continue
                markers.append(Marker(
                    name=f"label-{page.side.value}",
                    kind=MarkerKind.LABEL,
                    rect=Rect(page.rect.x, page.rect.y - LABEL_OFFSET, page.rect.width, LABEL_OFFSET),
                    fill=theme.label_color,
                    text=f"Page {page.page_number}"
                ))

        return markers
