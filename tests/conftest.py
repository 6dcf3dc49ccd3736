"""
Pytest configuration and fixtures.
"""

import io
import struct
import zlib

import pytest
from PIL import Image

from photobook.models import Page, PageSide, Rect, Viewport
from photobook.services.spread_store import SpreadStore
from photobook.services.storage_service import KeyValueState, MemoryBlobStore


@pytest.fixture
def desktop_viewport():
    """Typical laptop-sized canvas."""
    return Viewport(1280, 800)


@pytest.fixture
def mobile_viewport():
    """Phone-sized canvas (below the mobile breakpoint)."""
    return Viewport(375, 667)


@pytest.fixture
def two_pages():
    """Two 200x300 pages separated by a 20px gutter."""
    return [
        Page(PageSide.LEFT, Rect(0, 0, 200, 300), page_number=2),
        Page(PageSide.RIGHT, Rect(220, 0, 200, 300), page_number=3),
    ]


@pytest.fixture
def locked_pages():
    """Pages of the first content spread: locked left page, page 1 on the right."""
    return [
        Page(PageSide.LEFT, Rect(0, 0, 200, 300), locked=True),
        Page(PageSide.RIGHT, Rect(220, 0, 200, 300), page_number=1),
    ]


@pytest.fixture
def blobs():
    return MemoryBlobStore()


@pytest.fixture
def state():
    """Memory-only key-value state."""
    return KeyValueState()


@pytest.fixture
def store(blobs, state):
    """Spread store for a 30-page book (14 content spreads)."""
    return SpreadStore(blobs, state, spread_count=14)


@pytest.fixture
def make_image():
    """Factory producing encoded image bytes."""
    def _make(size=(400, 300), color=(200, 30, 30), fmt='JPEG', mode='RGB'):
        buffer = io.BytesIO()
        Image.new(mode, size, color).save(buffer, format=fmt)
        return buffer.getvalue()
    return _make


def _png_chunk(kind, payload):
    return (struct.pack(">I", len(payload)) + kind + payload
            + struct.pack(">I", zlib.crc32(kind + payload) & 0xffffffff))


@pytest.fixture
def oversized_png():
    """PNG whose header declares 20000x20000 pixels; the pixel data is truncated."""
    header = struct.pack(">IIBBBBB", 20000, 20000, 8, 2, 0, 0, 0)
    return (b"\x89PNG\r\n\x1a\n" + _png_chunk(b"IHDR", header)
            + _png_chunk(b"IDAT", zlib.compress(b"\x00")) + _png_chunk(b"IEND", b""))
