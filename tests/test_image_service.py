"""
Tests for the image service module.
"""

import io

import pytest
from PIL import Image

from photobook.models import ImageObject, PageSide, Rect, Spread, TextObject, Viewport
from photobook.services.geometry_service import GeometryService
from photobook.services.image_service import ImageService


@pytest.fixture
def service():
    return ImageService()


@pytest.fixture
def content_layout():
    return GeometryService.compute_layout(Viewport(1280, 800), 1.0, Spread(3, 14))


class TestDownscaledSize:
    """Tests for downscaled_size."""

    def test_landscape(self):
        assert ImageService.downscaled_size(2400, 1200) == (1200, 600)

    def test_portrait(self):
        assert ImageService.downscaled_size(1000, 3000) == (400, 1200)

    def test_small_image_unchanged(self):
        assert ImageService.downscaled_size(800, 600) == (800, 600)


class TestPrepareUpload:
    """Tests for prepare_upload."""

    def test_large_photo_is_downscaled(self, service, make_image):
        prepared = service.prepare_upload(make_image(size=(2400, 1200), fmt='PNG'))

        assert (prepared.width, prepared.height) == (1200, 600)
        with Image.open(io.BytesIO(prepared.data)) as image:
            assert image.format == 'JPEG'
            assert image.size == (1200, 600)

    def test_small_photo_keeps_size(self, service, make_image):
        prepared = service.prepare_upload(make_image(size=(320, 240)))
        assert (prepared.width, prepared.height) == (320, 240)

    def test_transparency_flattened_on_white(self, service, make_image):
        data = make_image(size=(20, 20), color=(0, 0, 0, 0), fmt='PNG', mode='RGBA')
        prepared = service.prepare_upload(data)

        with Image.open(io.BytesIO(prepared.data)) as image:
            assert image.mode == 'RGB'
            assert all(channel > 240 for channel in image.getpixel((10, 10)))

    def test_invalid_data_raises(self, service):
        with pytest.raises(ValueError, match="Unsupported image"):
            service.prepare_upload(b"definitely not an image")

    def test_oversized_header_raises(self, service, oversized_png):
        """Test that a header claiming 20000x20000 pixels is refused before decoding."""
        with pytest.raises(ValueError, match="Unsupported image"):
            service.prepare_upload(oversized_png)


class TestRenderSpread:
    """Tests for spread rendering."""

    def test_canvas_covers_pages(self, service, content_layout):
        image = service.render_spread(content_layout, [])
        right = content_layout.page(PageSide.RIGHT).rect
        assert image.mode == 'RGBA'
        assert image.width > right.right
        assert image.height > right.bottom

    def test_explicit_canvas_size(self, service, content_layout):
        image = service.render_spread(content_layout, [], canvas_size=(1280, 800))
        assert image.size == (1280, 800)

    def test_page_fill_is_white(self, service, content_layout):
        image = service.render_spread(content_layout, [])
        page = content_layout.page(PageSide.LEFT).rect
        assert image.getpixel((round(page.x) + 5, round(page.y) + 5)) == (255, 255, 255, 255)

    def test_locked_page_is_grey(self, service):
        layout = GeometryService.compute_layout(Viewport(1280, 800), 1.0, Spread(1, 14))
        image = service.render_spread(layout, [])
        page = layout.page(PageSide.LEFT).rect
        assert image.getpixel((round(page.x) + 5, round(page.y) + 5)) == (0x42, 0x42, 0x42, 255)

    def test_image_is_clipped(self, service, content_layout, make_image):
        page = content_layout.page(PageSide.LEFT).rect
        photo = ImageObject(id="p", x=page.x, y=page.y, width=100, height=100,
                            store_key="img_red", clip=Rect(page.x, page.y, 50, 100))
        image = service.render_spread(
            content_layout, [photo], {"img_red": make_image(size=(100, 100), color=(255, 0, 0))}
        )

        inside = image.getpixel((round(page.x) + 20, round(page.y) + 50))
        outside = image.getpixel((round(page.x) + 80, round(page.y) + 50))
        assert inside[0] > 200 and inside[1] < 60
        assert outside == (255, 255, 255, 255)

    def test_missing_photo_renders_placeholder(self, service, content_layout):
        page = content_layout.page(PageSide.RIGHT).rect
        photo = ImageObject(id="p", x=page.x + 10, y=page.y + 10, width=40, height=40,
                            store_key="img_gone", clip=Rect(page.x, page.y, page.width, page.height))
        image = service.render_spread(content_layout, [photo])
        assert image.getpixel((round(page.x) + 30, round(page.y) + 30)) == (200, 200, 200, 255)

    def test_hidden_objects_skipped(self, service, content_layout):
        page = content_layout.page(PageSide.RIGHT).rect
        photo = ImageObject(id="p", x=page.x + 10, y=page.y + 10, width=40, height=40,
                            visible=False)
        image = service.render_spread(content_layout, [photo])
        assert image.getpixel((round(page.x) + 30, round(page.y) + 30)) == (255, 255, 255, 255)

    def test_text_renders(self, service, content_layout):
        page = content_layout.page(PageSide.LEFT).rect
        text = TextObject(id="t", x=page.x + 10, y=page.y + 10, text="Hello", fill='#000000')
        blank = service.render_spread(content_layout, [])
        image = service.render_spread(content_layout, [text])
        assert image.tobytes() != blank.tobytes()

    def test_unusable_text_fill_falls_back_to_theme(self, service, content_layout):
        page = content_layout.page(PageSide.LEFT).rect
        broken = TextObject(id="t", x=page.x + 10, y=page.y + 10, text="Hello", fill="not-a-colour")
        themed = TextObject(id="t", x=page.x + 10, y=page.y + 10, text="Hello", fill='#111111')

        image = service.render_spread(content_layout, [broken])
        assert image.tobytes() == service.render_spread(content_layout, [themed]).tobytes()

    def test_thumbnail(self, service, content_layout):
        thumbnail = service.render_thumbnail(content_layout, [], max_size=(240, 170))
        assert thumbnail.width <= 240
        assert thumbnail.height <= 170
