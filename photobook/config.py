"""
Centralized configuration and constants for the photo-book editor.

This module contains all hardcoded values used by the layout engine,
making it easy to customize page sizes, limits, and colors in one place.
"""

from dataclasses import dataclass
from typing import Dict, Tuple


# A4 page in millimetres, converted to pixels at 96 dpi
A4_MM: Tuple[float, float] = (210, 297)
PX_PER_MM = 96 / 25.4                # ~3.7795 px per mm

# Viewport / device class
MOBILE_BREAKPOINT = 768              # Viewports narrower than this are mobile
PAGE_SCALE_DESKTOP = 0.6             # Base scale multiplier on top of the fit scale
PAGE_SCALE_MOBILE = 1.2              # Pages render 2x larger on mobile
VIEWPORT_PADDING = 40
THUMBNAILS_HEIGHT_DESKTOP = 180      # Reserved height of the thumbnail strip
THUMBNAILS_HEIGHT_MOBILE = 150

# Layout floors (avoid degenerate layouts at extreme zoom-out)
MIN_FIT_SCALE = 0.1
MIN_PAGE_WIDTH = 120
MIN_PAGE_HEIGHT = 140
MIN_GUTTER = 24
MIN_CONTENT_GUTTER = 8
GUTTER_RATIO = 0.02                  # Gutter base as a fraction of viewport width
MIN_AVAILABLE_HEIGHT = 200
MIN_PAGE_TOP = 20
MIN_SPINE_WIDTH = 16
SPINE_RATIO = 0.06                   # Spine width as a fraction of page width
LABEL_OFFSET = 24                    # Page labels sit this far above the page

# Zoom
MIN_ZOOM = 0.5
MAX_ZOOM = 2.0
ZOOM_STEP = 0.1
DEFAULT_ZOOM = 1.0

# Book structure
MIN_TOTAL_PAGES = 2
MAX_TOTAL_PAGES = 70                 # 35 spreads
DEFAULT_TOTAL_PAGES = 30
COVER_SPREAD = 0
FIRST_CONTENT_SPREAD = 1
PROTECTED_SPREADS = (COVER_SPREAD, FIRST_CONTENT_SPREAD)

# History and autosave
HISTORY_LIMIT = 50
AUTOSAVE_DELAY = 2.0                 # Seconds of inactivity before an autosave

# New objects
DEFAULT_IMAGE_SCALE = 0.5
DEFAULT_TEXT = "Text"
DEFAULT_FONT_SIZE = 28
TEXT_INSET = 24                      # New text on spread 1 goes this far inside the page
TEXT_WIDTH_FACTOR = 0.6              # Estimated glyph width per font-size unit
TEXT_LINE_HEIGHT = 1.16

# Image uploads
UPLOAD_MAX_DIM = 1200                # Longest side after downscaling
UPLOAD_JPEG_QUALITY = 80
IMAGE_KEY_PREFIX = "img_"
OBJECT_ID_PREFIX = "obj_"

# Storage keys and collections
SPREAD_KEY_PREFIX = "spread_"
IMAGES_COLLECTION = "imgs"
SPREADS_COLLECTION = "spreads"
PHOTO_SLOTS_KEY = "photo_slots"
METADATA_STATE_KEY = "savedSpreadsMeta"
PREFERENCES_STATE_KEY = "preferences"

# Text swatches offered by the colour panel (hex color codes)
TEXT_SWATCHES = ('#000000', '#ffffff', '#ff0000', '#00ff00',
                 '#0000ff', '#ffcc00', '#ff66aa', '#33ccff')

# Page colors
COLOR_PAGE_FILL = '#ffffff'     # Pages stay light in both themes
COLOR_LOCKED_PAGE = '#424242'   # Locked page and cover spine
COLOR_LOCK_LABEL = '#ffffff'

LOCK_NOTICE = "This page cannot be edited"


def spread_key(index: int) -> str:
    """Storage key for a spread record."""
    return f"{SPREAD_KEY_PREFIX}{index}"


@dataclass
class UITheme:
    """
    Centralized theme configuration.

    The theme only affects strokes and backgrounds; pages keep a white fill so
    the working area looks the same in light and dark mode.
    """
    name: str = 'light'
    background: str = '#f6f6f8'
    page_stroke: str = '#dddddd'
    label_color: str = '#aaaaaa'
    text_fill: str = '#111111'

    def __post_init__(self):
        """Validate color codes."""
        for color_name in ['background', 'page_stroke', 'label_color', 'text_fill']:
            color_value = getattr(self, color_name)
            if not (color_value.startswith('#') and len(color_value) == 7):
                raise ValueError(f"{color_name} must be a valid hex color code (e.g., #RRGGBB)")


THEMES: Dict[str, UITheme] = {
    'light': UITheme(),
    'dark': UITheme(
        name='dark',
        background='#202123',
        page_stroke='#444444',
        label_color='#999999',
        text_fill='#ffffff',
    ),
}

DEFAULT_THEME = 'light'


def get_theme(name: str) -> UITheme:
    """Look up a theme by name, falling back to the light theme."""
    return THEMES.get(name, THEMES[DEFAULT_THEME])
