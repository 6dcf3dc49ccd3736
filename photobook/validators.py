"""
Business logic validators for the photo-book structure.

This module contains the rules that keep the book well formed: page counts,
which spreads may be reordered, and what a stored spread record may contain.
The editor consults them before touching storage.
"""

from typing import List

from .config import MAX_TOTAL_PAGES, MIN_TOTAL_PAGES, TEXT_SWATCHES
from .models import ObjectKind, Spread, SpreadRecord, ValidationResult

HEX_DIGITS = set("0123456789abcdefABCDEF")


class BookValidator:
    """Validates book structure and persisted spread payloads."""

    @staticmethod
    def validate_total_pages(total_pages: int) -> ValidationResult:
        """
        Validate the total page count of a book.

        Args:
            total_pages: Number of pages including both cover pages

        Returns:
            ValidationResult with any errors
        """
        result = ValidationResult(is_valid=True)

        if total_pages % 2 != 0:
            result.add_error(f"Page count must be even, got {total_pages}")
        if total_pages < MIN_TOTAL_PAGES:
            result.add_error(f"A book needs at least {MIN_TOTAL_PAGES} pages")
        elif total_pages > MAX_TOTAL_PAGES:
            result.add_error(
                f"A book cannot have more than {MAX_TOTAL_PAGES} pages ({MAX_TOTAL_PAGES // 2} spreads)"
            )

        return result

    @staticmethod
    def validate_reorder(from_index: int, to_index: int, spread_count: int) -> ValidationResult:
        """
        Validate a spread reorder request.

        The cover (0) and the first content spread (1) are immovable, so any
        request touching them is rejected.

        Args:
            from_index: Spread being moved
            to_index: Position it should end up at
            spread_count: Number of content spreads in the book

        Returns:
            ValidationResult with any errors

        Example:
            >>> BookValidator.validate_reorder(1, 5, 14).is_valid
            False
            >>> BookValidator.validate_reorder(3, 10, 14).is_valid
            True
        """
        result = ValidationResult(is_valid=True)

        for index in (from_index, to_index):
            if index > spread_count:
                result.add_error(f"Spread {index} does not exist (book has {spread_count})")
            elif index < 0 or Spread(index, spread_count).is_protected:
                result.add_error(f"Spread {index} is protected and cannot be reordered")

        if from_index == to_index:
            result.add_error("Source and target spread are the same")

        return result

    @staticmethod
    def validate_text_color(color: str) -> ValidationResult:
        """
        Validate a text fill colour.

        Any #RRGGBB code is accepted; colours outside the swatch panel only
        produce a warning.

        Example:
            >>> BookValidator.validate_text_color('#ff0000').is_valid
            True
            >>> BookValidator.validate_text_color('red').is_valid
            False
        """
        result = ValidationResult(is_valid=True)

        if not (isinstance(color, str) and len(color) == 7 and color.startswith('#')
                and set(color[1:]) <= HEX_DIGITS):
            result.add_error(f"{color!r} is not a hex color code (e.g., #RRGGBB)")
        elif color.lower() not in TEXT_SWATCHES:
            result.add_warning(f"{color} is not one of the panel swatches")

        return result

    @staticmethod
    def validate_record(record: SpreadRecord) -> ValidationResult:
        """
        Validate the object payload of a stored spread record.

        Args:
            record: Decoded spread record

        Returns:
            ValidationResult; errors mean the record cannot be loaded
        """
        result = ValidationResult(is_valid=True)
        known_types = {kind.value for kind in ObjectKind}
        seen: List[str] = []

        for position, data in enumerate(record.objects):
            if not isinstance(data, dict):
                result.add_error(f"Object {position} is not a mapping")
                continue
            if data.get('pageMarker') or data.get('pageLabel'):
                result.add_error(f"Object {position} is a page marker")
                continue
            if data.get('type') not in known_types:
                result.add_error(f"Object {position} has unknown type {data.get('type')!r}")
            object_id = data.get('_id')
            if not object_id:
                result.add_error(f"Object {position} has no id")
            elif object_id in seen:
                result.add_warning(f"Duplicate object id {object_id!r}")
            else:
                seen.append(object_id)

        return result
