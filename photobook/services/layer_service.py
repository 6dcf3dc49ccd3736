"""
Layer Service - Read model for the layer panel and layer reordering.
"""

import logging
from typing import List

from ..models import LayerItem, Page
from ..scene import Scene
from .constraint_service import ConstraintService

logger = logging.getLogger(__name__)


class LayerService:
    """Builds the layer list and moves drawables within the stacking order."""

    @staticmethod
    def layers(scene: Scene, pages: List[Page]) -> List[LayerItem]:
        """
        List the drawables shown on the visible pages, bottom-to-top.

        A drawable is listed when the horizontal centre of its bounding box
        lies within one of the pages, or when it is anchored to one of them
        because it is wider than the page. ``z`` is the position among the listed
        drawables.
        """
        items = []
        for obj in scene.objects():
            center_x = obj.bounding_box().center_x
            on_page = any(page.rect.spans_x(center_x) for page in pages)
            if not on_page and ConstraintService.anchored_page(obj, pages) is None:
                continue
            items.append(LayerItem(
                id=obj.id,
                kind=obj.kind,
                name=obj.kind.value,
                visible=obj.visible,
                z=len(items)
            ))
        return items

    @staticmethod
    def move_to_index(scene: Scene, object_id: str, new_index: int) -> bool:
        """
        Move a drawable to a new position among the drawables.

        Markers stay beneath every drawable; the index is clamped to
        [0, drawable count - 1].

        Returns:
            False if no drawable has that id
        """
        obj = scene.find(object_id)
        if obj is None:
            logger.debug("Layer move ignored, unknown object %s", object_id)
            return False

        count = len(scene.objects())
        clamped = max(0, min(new_index, count - 1))
        scene.remove(obj)
        scene.insert_at(obj, scene.marker_count + clamped)
        return True
