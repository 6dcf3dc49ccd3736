"""
Scene graph for the spread currently being edited.

The scene is an ordered list of items: layout markers (page backgrounds,
spine, labels) at the bottom and user drawables above them, in stacking
order. It is owned by the editor and passed to the services that need it.
"""

import json
from dataclasses import replace
from typing import Iterable, List, Optional, Union

from .errors import SerializationError
from .models import DrawableObject, Marker, Rect, drawable_from_dict


SceneItem = Union[Marker, DrawableObject]


class Scene:
    """
    Ordered collection of markers and drawables.

    Markers are always kept beneath every drawable; adding a marker inserts
    it at the top of the marker block, adding a drawable puts it on top of
    the stack.
    """

    def __init__(self):
        self._items: List[SceneItem] = []

    def __len__(self):
        return len(self._items)

    def items(self) -> List[SceneItem]:
        """All items bottom-to-top."""
        return list(self._items)

    def markers(self) -> List[Marker]:
        return [item for item in self._items if isinstance(item, Marker)]

    def objects(self) -> List[DrawableObject]:
        """User drawables bottom-to-top."""
        return [item for item in self._items if isinstance(item, DrawableObject)]

    @property
    def marker_count(self) -> int:
        return sum(1 for item in self._items if isinstance(item, Marker))

    def add(self, item: SceneItem):
        if isinstance(item, Marker):
            self._items.insert(self.marker_count, item)
        else:
            self._items.append(item)

    def remove(self, item: SceneItem) -> bool:
        for position, existing in enumerate(self._items):
            if existing is item:
                del self._items[position]
                return True
        return False

    def insert_at(self, obj: DrawableObject, index: int):
        """Insert a drawable at an absolute stack index, never below a marker."""
        index = max(self.marker_count, min(index, len(self._items)))
        self._items.insert(index, obj)

    def find(self, object_id: str) -> Optional[DrawableObject]:
        for obj in self.objects():
            if obj.id == object_id:
                return obj
        return None

    def clear_objects(self) -> List[DrawableObject]:
        """Remove every drawable, keeping the layout markers."""
        removed = self.objects()
        self._items = self.markers()
        return removed

    def replace_markers(self, markers: Iterable[Marker]):
        """Swap the layout markers for a freshly computed set."""
        self._items = list(markers) + self.objects()

    def bounding_box(self, obj: DrawableObject) -> Rect:
        return obj.bounding_box()

    def set_clip(self, obj: DrawableObject, rect: Optional[Rect]):
        obj.clip = replace(rect) if rect is not None else None

    def hit_test(self, x: float, y: float) -> Optional[DrawableObject]:
        """Topmost visible drawable under a point."""
        for obj in reversed(self.objects()):
            if obj.visible and obj.bounding_box().contains_point(x, y):
                return obj
        return None

    def serialize(self, objects: Optional[Iterable[DrawableObject]] = None) -> List[dict]:
        """Serialize drawables (all of them by default); markers are never included."""
        if objects is None:
            objects = self.objects()
        return [obj.to_dict() for obj in objects if isinstance(obj, DrawableObject)]

    @staticmethod
    def deserialize(tree: Iterable[dict]) -> List[DrawableObject]:
        """
        Rebuild drawables from serialized dictionaries.

        Raises:
            SerializationError: If any entry is malformed
        """
        return [drawable_from_dict(data) for data in tree]

    def snapshot(self) -> str:
        """JSON snapshot of the drawables, used by the undo history."""
        return json.dumps(self.serialize(), sort_keys=True)

    def restore(self, snapshot: str):
        """Replace all drawables with the ones stored in a snapshot."""
        try:
            objects = self.deserialize(json.loads(snapshot))
        except (ValueError, TypeError) as e:
            raise SerializationError(f"Invalid scene snapshot: {e}") from e

        self.clear_objects()
        for obj in objects:
            self.add(obj)
