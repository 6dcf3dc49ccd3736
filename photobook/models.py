"""
Data models for the photo-book editor.

This module defines typed dataclasses for pages, spreads, drawable objects
and persisted records, replacing the loose dictionaries a canvas library
would otherwise pass around.
"""

import base64
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .config import (
    COVER_SPREAD, DEFAULT_FONT_SIZE, DEFAULT_TEXT, DEFAULT_THEME, DEFAULT_TOTAL_PAGES,
    DEFAULT_ZOOM, FIRST_CONTENT_SPREAD, MAX_ZOOM, MIN_ZOOM, MOBILE_BREAKPOINT,
    PROTECTED_SPREADS, TEXT_LINE_HEIGHT, TEXT_WIDTH_FACTOR,
    THEMES, spread_key,
)
from .errors import SerializationError


PageRange = Tuple[int, int]


class PageSide(Enum):
    """Which half of a spread a page occupies."""
    LEFT = "left"
    RIGHT = "right"


class CoverRole(Enum):
    """Role of a page on the cover spread."""
    NONE = "none"
    FRONT = "front"   # Right-hand cover page
    BACK = "back"     # Left-hand cover page


class ObjectKind(Enum):
    """Kind of a user-placed drawable."""
    IMAGE = "image"
    TEXT = "text"


class MarkerKind(Enum):
    """Kind of a non-editable scene marker drawn by the layout engine."""
    PAGE = "page"
    SPINE = "spine"
    LABEL = "label"
    LOCK_LABEL = "lock-label"


@dataclass
class Rect:
    """Axis-aligned rectangle in absolute canvas pixels."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2

    def spans_x(self, x: float) -> bool:
        """Check if a horizontal coordinate falls within this rectangle's span."""
        return self.x <= x <= self.right

    def contains_point(self, x: float, y: float) -> bool:
        return self.spans_x(x) and self.y <= y <= self.bottom

    def contains_rect(self, other: 'Rect', tolerance: float = 1e-6) -> bool:
        """Check if another rectangle lies fully inside this one."""
        return (
            other.x >= self.x - tolerance and
            other.y >= self.y - tolerance and
            other.right <= self.right + tolerance and
            other.bottom <= self.bottom + tolerance
        )

    def to_dict(self) -> dict:
        return {'left': self.x, 'top': self.y, 'width': self.width, 'height': self.height}

    @classmethod
    def from_dict(cls, data: dict) -> 'Rect':
        return cls(
            x=float(data['left']),
            y=float(data['top']),
            width=float(data['width']),
            height=float(data['height'])
        )


@dataclass
class Viewport:
    """Visible canvas size in pixels."""
    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Viewport must be positive, got {self.width}x{self.height}")

    @property
    def is_mobile(self) -> bool:
        return self.width < MOBILE_BREAKPOINT


@dataclass
class Page:
    """
    A single page rectangle of the spread currently on screen.

    Pages are derived from the viewport every time the layout is recomputed
    and are never persisted.
    """
    side: PageSide
    rect: Rect
    locked: bool = False
    cover_role: CoverRole = CoverRole.NONE
    page_number: Optional[int] = None

    @property
    def marker_name(self) -> str:
        """Scene marker name, e.g. 'left' or 'cover-right'."""
        if self.cover_role != CoverRole.NONE:
            return f"cover-{self.side.value}"
        return self.side.value

    def __repr__(self):
        lock = ", locked" if self.locked else ""
        return f"Page({self.marker_name}{lock})"


def page_range_for(spread_index: int, spread_count: int) -> Optional[PageRange]:
    """
    Page numbers shown on a spread.

    The cover has no page numbers. The first content spread only shows its
    right page (page 1) because its left page is glued to the cover. Middle
    spreads show two pages and the last spread shows a single page.

    Example:
        >>> page_range_for(1, 14)
        (1, 1)
        >>> page_range_for(2, 14)
        (2, 3)
        >>> page_range_for(14, 14)
        (26, 26)
    """
    if spread_index == COVER_SPREAD:
        return None
    if spread_index == FIRST_CONTENT_SPREAD:
        return (1, 1)
    first = spread_index * 2 - 2
    if spread_index == spread_count:
        return (first, first)
    return (first, first + 1)


def spread_count_for(total_pages: int) -> int:
    """Number of content spreads for a book of ``total_pages`` pages."""
    return (total_pages - 2) // 2


@dataclass
class Spread:
    """
    A navigable unit of the book.

    Index 0 is the cover, index 1 the first content spread (one editable
    page), indices 2..spread_count are ordinary content spreads.
    """
    index: int
    spread_count: int

    def __post_init__(self):
        """Validate spread index."""
        if self.index < 0:
            raise ValueError(f"Spread index must be >= 0, got {self.index}")
        if self.index > self.spread_count:
            raise ValueError(
                f"Spread index {self.index} exceeds spread count {self.spread_count}"
            )

    @property
    def is_cover(self) -> bool:
        return self.index == COVER_SPREAD

    @property
    def has_locked_page(self) -> bool:
        return self.index == FIRST_CONTENT_SPREAD

    @property
    def is_protected(self) -> bool:
        """Cover and first content spread can never be reordered."""
        return self.index in PROTECTED_SPREADS

    @property
    def page_range(self) -> Optional[PageRange]:
        return page_range_for(self.index, self.spread_count)

    @property
    def key(self) -> str:
        return spread_key(self.index)

    def __repr__(self):
        return f"Spread({self.index}, pages={self.page_range})"


@dataclass
class DrawableObject:
    """
    Base class for user-placed objects.

    Position is the top-left corner of the bounding box in absolute canvas
    pixels. The clip rectangle is derived from the owner page and is always
    recomputed after a move, scale or load.
    """
    id: str
    x: float = 0.0
    y: float = 0.0
    scale_x: float = 1.0
    scale_y: float = 1.0
    visible: bool = True
    clip: Optional[Rect] = None

    kind = None  # Overridden by subclasses

    def natural_size(self) -> Tuple[float, float]:
        raise NotImplementedError

    def bounding_box(self) -> Rect:
        width, height = self.natural_size()
        return Rect(self.x, self.y, width * self.scale_x, height * self.scale_y)

    def move_to(self, x: float, y: float):
        self.x = x
        self.y = y

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            'type': self.kind.value,
            '_id': self.id,
            'left': self.x,
            'top': self.y,
            'scaleX': self.scale_x,
            'scaleY': self.scale_y,
            'visible': self.visible,
            'clipPath': self.clip.to_dict() if self.clip else None,
        }

    @staticmethod
    def _common_fields(data: dict) -> Dict[str, Any]:
        clip = data.get('clipPath')
        return {
            'id': str(data['_id']),
            'x': float(data.get('left', 0.0)),
            'y': float(data.get('top', 0.0)),
            'scale_x': float(data.get('scaleX', 1.0)),
            'scale_y': float(data.get('scaleY', 1.0)),
            'visible': bool(data.get('visible', True)),
            'clip': Rect.from_dict(clip) if clip else None,
        }


@dataclass
class ImageObject(DrawableObject):
    """A placed photo; pixels live in the image blob store under ``store_key``."""
    store_key: Optional[str] = None
    width: int = 0
    height: int = 0

    kind = ObjectKind.IMAGE

    def natural_size(self) -> Tuple[float, float]:
        return float(self.width), float(self.height)

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({'_storeKey': self.store_key, 'width': self.width, 'height': self.height})
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'ImageObject':
        return cls(
            store_key=data.get('_storeKey'),
            width=int(data.get('width', 0)),
            height=int(data.get('height', 0)),
            **cls._common_fields(data)
        )


@dataclass
class TextObject(DrawableObject):
    """A single-line text box."""
    text: str = DEFAULT_TEXT
    font_size: int = DEFAULT_FONT_SIZE
    fill: str = '#111111'

    kind = ObjectKind.TEXT

    def natural_size(self) -> Tuple[float, float]:
        # Estimated metrics; the renderer is not pixel accurate
        width = max(1, len(self.text)) * self.font_size * TEXT_WIDTH_FACTOR
        return width, self.font_size * TEXT_LINE_HEIGHT

    def to_dict(self) -> dict:
        data = super().to_dict()
        data.update({'text': self.text, 'fontSize': self.font_size, 'fill': self.fill})
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'TextObject':
        return cls(
            text=str(data.get('text', DEFAULT_TEXT)),
            font_size=int(data.get('fontSize', DEFAULT_FONT_SIZE)),
            fill=str(data.get('fill', '#111111')),
            **cls._common_fields(data)
        )


_DRAWABLE_TYPES = {
    ObjectKind.IMAGE: ImageObject,
    ObjectKind.TEXT: TextObject,
}


def drawable_from_dict(data: dict) -> DrawableObject:
    """
    Rebuild a drawable from its stored dictionary.

    Raises:
        SerializationError: If the payload has an unknown type or missing fields
    """
    try:
        kind = ObjectKind(data['type'])
        return _DRAWABLE_TYPES[kind].from_dict(data)
    except (KeyError, TypeError, ValueError) as e:
        raise SerializationError(f"Invalid drawable payload: {e}") from e


@dataclass
class Marker:
    """
    A layout marker (page background, spine or label).

    Markers always sit beneath user objects and are never saved with a spread.
    """
    name: str
    kind: MarkerKind
    rect: Rect
    fill: Optional[str] = None
    stroke: Optional[str] = None
    text: Optional[str] = None
    font_size: int = 12


@dataclass
class SpreadLayout:
    """Pixel layout of one spread for the current viewport and zoom."""
    spread: Spread
    pages: List[Page]
    gutter: int
    page_width: int
    page_height: int
    spine: Optional[Rect] = None
    markers: List[Marker] = field(default_factory=list)

    def page(self, side: PageSide) -> Optional[Page]:
        for page in self.pages:
            if page.side == side:
                return page
        return None


@dataclass
class SpreadRecord:
    """
    Persisted contents of one spread.

    Objects are kept in their stored dictionary form so a record can be moved
    between keys without being decoded.
    """
    spread_index: int
    page_range: Optional[PageRange]
    saved_at: int
    objects: List[dict] = field(default_factory=list)

    @property
    def key(self) -> str:
        return spread_key(self.spread_index)

    def drawables(self) -> List[DrawableObject]:
        return [drawable_from_dict(data) for data in self.objects]

    def to_dict(self) -> dict:
        return {
            'spread': self.spread_index,
            'pages': list(self.page_range) if self.page_range else None,
            'ts': self.saved_at,
            'objects': self.objects,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SpreadRecord':
        try:
            pages = data.get('pages')
            objects = data.get('objects', [])
            if not isinstance(objects, list):
                raise TypeError("objects must be a list")
            return cls(
                spread_index=int(data['spread']),
                page_range=(int(pages[0]), int(pages[1])) if pages else None,
                saved_at=int(data.get('ts', 0)),
                objects=objects
            )
        except (KeyError, TypeError, ValueError, IndexError) as e:
            raise SerializationError(f"Invalid spread record: {e}") from e


@dataclass
class SpreadMeta:
    """Summary of a saved spread, listed without loading its objects."""
    key: str
    spread_index: int
    page_range: Optional[PageRange]
    saved_at: int

    def to_dict(self) -> dict:
        return {
            'key': self.key,
            'spread': self.spread_index,
            'pages': list(self.page_range) if self.page_range else None,
            'ts': self.saved_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SpreadMeta':
        pages = data.get('pages')
        return cls(
            key=str(data['key']),
            spread_index=int(data['spread']),
            page_range=(int(pages[0]), int(pages[1])) if pages else None,
            saved_at=int(data.get('ts', 0))
        )


@dataclass
class LayerItem:
    """Row of the layer panel."""
    id: str
    kind: ObjectKind
    name: str
    visible: bool
    z: int


@dataclass
class PhotoSlot:
    """
    An uploaded photo.

    ``data`` holds the inline image bytes until storage pressure forces them
    out; the blob store copy under ``key`` is authoritative.
    """
    key: str
    width: int
    height: int
    data: Optional[bytes] = None

    def to_dict(self) -> dict:
        return {
            'key': self.key,
            'width': self.width,
            'height': self.height,
            'data': base64.b64encode(self.data).decode('ascii') if self.data else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'PhotoSlot':
        inline = data.get('data')
        return cls(
            key=str(data['key']),
            width=int(data.get('width', 0)),
            height=int(data.get('height', 0)),
            data=base64.b64decode(inline) if inline else None
        )


@dataclass
class EditorPreferences:
    """User preferences persisted between sessions."""
    zoom: float = DEFAULT_ZOOM
    theme: str = DEFAULT_THEME
    total_pages: int = DEFAULT_TOTAL_PAGES

    def __post_init__(self):
        """Validate preferences."""
        if not MIN_ZOOM <= self.zoom <= MAX_ZOOM:
            raise ValueError(f"zoom must be between {MIN_ZOOM} and {MAX_ZOOM}, got {self.zoom}")
        if self.theme not in THEMES:
            raise ValueError(f"Unknown theme: '{self.theme}'")
        from .validators import BookValidator
        pages = BookValidator.validate_total_pages(self.total_pages)
        if not pages.is_valid:
            raise ValueError(f"total_pages is invalid: {'; '.join(pages.errors)}")

    def to_dict(self) -> dict:
        return {'zoom': self.zoom, 'theme': self.theme, 'total_pages': self.total_pages}

    @classmethod
    def from_dict(cls, data: dict) -> 'EditorPreferences':
        return cls(
            zoom=float(data.get('zoom', DEFAULT_ZOOM)),
            theme=str(data.get('theme', DEFAULT_THEME)),
            total_pages=int(data.get('total_pages', DEFAULT_TOTAL_PAGES))
        )


@dataclass
class Notice:
    """A user-visible message (save or reorder failure, unreadable spread)."""
    level: str      # "info", "warning" or "error"
    message: str


@dataclass
class ValidationResult:
    """
    Result of validation checks.

    Contains validation status, errors, and warnings that can be
    displayed to the user.
    """
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str):
        """Add an error message and mark as invalid."""
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str):
        """Add a warning message."""
        self.warnings.append(message)

    def has_issues(self) -> bool:
        """Check if there are any errors or warnings."""
        return len(self.errors) > 0 or len(self.warnings) > 0

    def get_summary(self) -> str:
        """Get a human-readable summary of validation results."""
        if self.is_valid and not self.warnings:
            return "Validation passed with no issues"

        parts = []
        if self.errors:
            parts.append(f"{len(self.errors)} error(s)")
        if self.warnings:
            parts.append(f"{len(self.warnings)} warning(s)")

        return ", ".join(parts)

    def __repr__(self):
        return f"ValidationResult(is_valid={self.is_valid}, {self.get_summary()})"


@dataclass
class EditorStatus:
    """Observable editor state for the surrounding UI."""
    spread_index: int
    spread_count: int
    page_label: str
    zoom: float
    theme: str
    layers: List[LayerItem] = field(default_factory=list)
    saved_spreads: List[SpreadMeta] = field(default_factory=list)
    can_undo: bool = False
    can_redo: bool = False
