"""
Image Service - Photo preparation and spread rendering.

Uploaded photos are downscaled and recompressed before they are stored so
they don't exhaust browser-sized storage quotas. The same service renders a
spread (pages, spine, labels, photos and text) to a PIL image for the
thumbnail strip and for previews.
"""

import io
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFont, UnidentifiedImageError

from ..config import UPLOAD_JPEG_QUALITY, UPLOAD_MAX_DIM, UITheme, get_theme
from ..models import (
    DrawableObject, ImageObject, Marker, MarkerKind, Rect, SpreadLayout, TextObject,
)

logger = logging.getLogger(__name__)

PLACEHOLDER_COLOR = (200, 200, 200, 255)


@dataclass
class PreparedImage:
    """A photo ready for storage."""
    data: bytes
    width: int
    height: int


def _box(rect: Rect) -> Tuple[int, int, int, int]:
    return (round(rect.x), round(rect.y), round(rect.right), round(rect.bottom))


class ImageService:
    """
    Service for preparing uploads and rasterizing spreads.

    Rendering is a preview, not a print path: text uses Pillow's default font
    and sizes are estimates.
    """

    @staticmethod
    def downscaled_size(width: int, height: int, max_dim: int = UPLOAD_MAX_DIM) -> Tuple[int, int]:
        """
        Size after fitting the longest side into ``max_dim``.

        Example:
            >>> ImageService.downscaled_size(2400, 1200)
            (1200, 600)
            >>> ImageService.downscaled_size(800, 600)
            (800, 600)
        """
        if width <= max_dim and height <= max_dim:
            return width, height
        ratio = min(max_dim / width, max_dim / height)
        return max(1, round(width * ratio)), max(1, round(height * ratio))

    def prepare_upload(
        self,
        data: bytes,
        max_dim: int = UPLOAD_MAX_DIM,
        quality: int = UPLOAD_JPEG_QUALITY
    ) -> PreparedImage:
        """
        Downscale and recompress an uploaded photo.

        Args:
            data: Raw file contents
            max_dim: Maximum width/height after downscaling
            quality: JPEG quality of the stored copy

        Returns:
            PreparedImage with JPEG bytes and final pixel size

        Raises:
            ValueError: If the data is not a readable image or its pixel
                        count exceeds Pillow's decompression-bomb limit
        """
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise ValueError(f"Unsupported image: {e}") from e

        size = self.downscaled_size(image.width, image.height, max_dim)
        if size != image.size:
            image = image.resize(size, Image.LANCZOS)

        if image.mode in ('RGBA', 'LA', 'P'):
            image = image.convert('RGBA')
            flattened = Image.new('RGB', image.size, 'white')
            flattened.paste(image, mask=image.getchannel('A'))
            image = flattened
        elif image.mode != 'RGB':
            image = image.convert('RGB')

        buffer = io.BytesIO()
        image.save(buffer, format='JPEG', quality=quality)
        return PreparedImage(buffer.getvalue(), image.width, image.height)

    def render_spread(
        self,
        layout: SpreadLayout,
        objects: Iterable[DrawableObject],
        images: Optional[Dict[str, bytes]] = None,
        canvas_size: Optional[Tuple[int, int]] = None,
        theme: Optional[UITheme] = None
    ) -> Image.Image:
        """
        Rasterize a spread.

        Args:
            layout: Page layout of the spread
            objects: Drawables bottom-to-top
            images: Image bytes by store key; missing photos render as grey boxes
            canvas_size: Output size, defaults to the bounding area of the pages
            theme: Theme for the background colour

        Returns:
            RGBA PIL image
        """
        theme = theme or get_theme('light')
        images = images or {}
        if canvas_size is None:
            right = max(page.rect.right for page in layout.pages)
            bottom = max(page.rect.bottom for page in layout.pages)
            canvas_size = (int(right) + 1, int(bottom) + 1)

        canvas = Image.new('RGBA', canvas_size, theme.background)
        draw = ImageDraw.Draw(canvas)

        for marker in layout.markers:
            self._draw_marker(draw, marker)

        for obj in objects:
            if not obj.visible:
                continue
            layer = Image.new('RGBA', canvas_size, (0, 0, 0, 0))
            if isinstance(obj, ImageObject):
                self._draw_image(layer, obj, images.get(obj.store_key))
            elif isinstance(obj, TextObject):
                ImageDraw.Draw(layer).text(
                    (round(obj.x), round(obj.y)), obj.text,
                    fill=self._text_fill(obj, theme), font=ImageFont.load_default()
                )
            self._composite_clipped(canvas, layer, obj.clip)

        return canvas

    def render_thumbnail(self, layout: SpreadLayout, objects: Iterable[DrawableObject],
                         images: Optional[Dict[str, bytes]] = None,
                         max_size: Tuple[int, int] = (240, 170)) -> Image.Image:
        """Render a spread and shrink it for the thumbnail strip."""
        image = self.render_spread(layout, objects, images)
        image.thumbnail(max_size)
        return image

    @staticmethod
    def _text_fill(obj: TextObject, theme: UITheme):
        try:
            return ImageColor.getrgb(obj.fill)
        except ValueError:
            logger.warning("Text %s has unusable fill %r; using %s", obj.id, obj.fill, theme.text_fill)
            return ImageColor.getrgb(theme.text_fill)

    @staticmethod
    def _draw_marker(draw: ImageDraw.ImageDraw, marker: Marker):
        if marker.kind in (MarkerKind.PAGE, MarkerKind.SPINE):
            draw.rectangle(_box(marker.rect), fill=marker.fill, outline=marker.stroke)
        elif marker.kind == MarkerKind.LOCK_LABEL:
            draw.text(
                (round(marker.rect.center_x), round(marker.rect.center_y)),
                marker.text or "", fill=marker.fill, anchor='mm',
                font=ImageFont.load_default()
            )
        elif marker.kind == MarkerKind.LABEL:
            draw.text(
                (round(marker.rect.center_x), round(marker.rect.y)),
                marker.text or "", fill=marker.fill, anchor='ma',
                font=ImageFont.load_default()
            )

    @staticmethod
    def _draw_image(layer: Image.Image, obj: ImageObject, data: Optional[bytes]):
        box = obj.bounding_box()
        size = (max(1, round(box.width)), max(1, round(box.height)))
        origin = (round(box.x), round(box.y))

        if data is None:
            ImageDraw.Draw(layer).rectangle(_box(box), fill=PLACEHOLDER_COLOR)
            return

        try:
            photo = Image.open(io.BytesIO(data)).convert('RGBA')
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            logger.warning("Cannot render image %s: %s", obj.store_key, e)
            ImageDraw.Draw(layer).rectangle(_box(box), fill=PLACEHOLDER_COLOR)
            return

        layer.paste(photo.resize(size, Image.LANCZOS), origin)

    @staticmethod
    def _composite_clipped(canvas: Image.Image, layer: Image.Image, clip: Optional[Rect]):
        if clip is None:
            canvas.alpha_composite(layer)
            return

        left, top, right, bottom = _box(clip)
        left, top = max(0, left), max(0, top)
        right, bottom = min(canvas.width, right), min(canvas.height, bottom)
        if right <= left or bottom <= top:
            return
        region = layer.crop((left, top, right, bottom))
        canvas.alpha_composite(region, dest=(left, top))
