"""
Tests for the page geometry service.
"""

import pytest

from photobook.config import COLOR_LOCKED_PAGE, MIN_PAGE_HEIGHT, MIN_PAGE_WIDTH
from photobook.models import CoverRole, MarkerKind, PageSide, Spread, Viewport
from photobook.services.geometry_service import GeometryService, a4_pixel_size, clamp_zoom


class TestA4:
    """Tests for module-level helpers."""

    def test_a4_pixels(self):
        assert a4_pixel_size() == (794, 1123)

    def test_clamp_zoom(self):
        assert clamp_zoom(0.1) == 0.5
        assert clamp_zoom(3.0) == 2.0
        assert clamp_zoom(1.3) == 1.3


class TestPageSize:
    """Tests for page sizing."""

    def test_a4_aspect_ratio(self, desktop_viewport):
        width, height = GeometryService.page_size(desktop_viewport, 1.0)
        assert width / height == pytest.approx(210 / 297, abs=0.01)

    def test_zoom_is_clamped(self, desktop_viewport):
        assert GeometryService.page_size(desktop_viewport, 5.0) == \
            GeometryService.page_size(desktop_viewport, 2.0)
        assert GeometryService.page_size(desktop_viewport, 0.1) == \
            GeometryService.page_size(desktop_viewport, 0.5)

    def test_zoom_grows_pages(self, desktop_viewport):
        small = GeometryService.page_size(desktop_viewport, 1.0)
        large = GeometryService.page_size(desktop_viewport, 1.5)
        assert large[0] > small[0]
        assert large[1] > small[1]

    def test_minimum_page_size(self):
        """Test that tiny viewports still get usable pages."""
        width, height = GeometryService.page_size(Viewport(100, 100), 0.5)
        assert width >= MIN_PAGE_WIDTH
        assert height >= MIN_PAGE_HEIGHT

    def test_thumbnail_strip_height(self, desktop_viewport, mobile_viewport):
        assert GeometryService.thumbnails_height(desktop_viewport) == 180
        assert GeometryService.thumbnails_height(mobile_viewport) == 150


class TestComputeLayout:
    """Tests for spread layouts."""

    def test_pages_side_by_side(self, desktop_viewport):
        layout = GeometryService.compute_layout(desktop_viewport, 1.0, Spread(3, 14))
        left = layout.page(PageSide.LEFT).rect
        right = layout.page(PageSide.RIGHT).rect

        assert left.width == right.width == layout.page_width
        assert left.y == right.y
        assert right.x - left.right == pytest.approx(layout.gutter)

    def test_spread_is_centred(self, desktop_viewport):
        layout = GeometryService.compute_layout(desktop_viewport, 1.0, Spread(3, 14))
        left = layout.page(PageSide.LEFT).rect
        right = layout.page(PageSide.RIGHT).rect
        assert left.x == pytest.approx(desktop_viewport.width - right.right)

    def test_content_gutter_narrower_than_cover(self, desktop_viewport):
        cover = GeometryService.compute_layout(desktop_viewport, 1.0, Spread(0, 14))
        content = GeometryService.compute_layout(desktop_viewport, 1.0, Spread(2, 14))
        assert content.gutter < cover.gutter
        assert content.gutter >= 8

    def test_cover_roles_and_spine(self, desktop_viewport):
        layout = GeometryService.compute_layout(desktop_viewport, 1.0, Spread(0, 14))

        assert layout.page(PageSide.LEFT).cover_role == CoverRole.BACK
        assert layout.page(PageSide.RIGHT).cover_role == CoverRole.FRONT
        assert layout.spine is not None
        assert layout.spine.width >= 16
        assert layout.page(PageSide.LEFT).rect.right <= layout.spine.center_x
        assert layout.spine.center_x <= layout.page(PageSide.RIGHT).rect.x

    def test_no_spine_on_content_spreads(self, desktop_viewport):
        layout = GeometryService.compute_layout(desktop_viewport, 1.0, Spread(4, 14))
        assert layout.spine is None
        assert not any(m.kind == MarkerKind.SPINE for m in layout.markers)

    def test_first_content_spread_locks_left_page(self, desktop_viewport):
        layout = GeometryService.compute_layout(desktop_viewport, 1.0, Spread(1, 14))
        left = layout.page(PageSide.LEFT)
        right = layout.page(PageSide.RIGHT)

        assert left.locked
        assert not right.locked
        assert right.page_number == 1

        left_marker = next(m for m in layout.markers if m.name == 'left')
        assert left_marker.fill == COLOR_LOCKED_PAGE
        assert any(m.kind == MarkerKind.LOCK_LABEL for m in layout.markers)

    def test_page_numbers(self, desktop_viewport):
        layout = GeometryService.compute_layout(desktop_viewport, 1.0, Spread(5, 14))
        assert layout.page(PageSide.LEFT).page_number == 8
        assert layout.page(PageSide.RIGHT).page_number == 9

    def test_last_spread_numbers_right_page_only(self, desktop_viewport):
        layout = GeometryService.compute_layout(desktop_viewport, 1.0, Spread(14, 14))
        assert layout.page(PageSide.LEFT).page_number is None
        assert not layout.page(PageSide.LEFT).locked
        assert layout.page(PageSide.RIGHT).page_number == 26

        labels = [m for m in layout.markers if m.kind == MarkerKind.LABEL]
        assert [m.text for m in labels] == ["Page 26"]
        assert labels[0].rect.center_x == pytest.approx(layout.page(PageSide.RIGHT).rect.center_x)

    def test_labels_on_desktop(self, desktop_viewport):
        layout = GeometryService.compute_layout(desktop_viewport, 1.0, Spread(5, 14))
        labels = [m.text for m in layout.markers if m.kind == MarkerKind.LABEL]
        assert labels == ["Page 8", "Page 9"]

    def test_no_labels_on_mobile(self, mobile_viewport):
        layout = GeometryService.compute_layout(mobile_viewport, 1.0, Spread(5, 14))
        assert not any(m.kind == MarkerKind.LABEL for m in layout.markers)

    def test_markers_named_after_pages(self, desktop_viewport):
        cover = GeometryService.compute_layout(desktop_viewport, 1.0, Spread(0, 14))
        names = {m.name for m in cover.markers}
        assert {'cover-left', 'cover-right', 'cover-spine'} <= names
