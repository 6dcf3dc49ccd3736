"""
Service layer for the photo-book editor.

Services compute layouts, keep drawables on their pages, persist spreads and
photos, and coordinate navigation between spreads.
"""

from .constraint_service import ConstraintService
from .geometry_service import GeometryService
from .history_service import HistoryStack
from .image_service import ImageService
from .layer_service import LayerService
from .navigator import SpreadNavigator
from .photo_service import PhotoService
from .preferences_service import PreferencesService
from .spread_store import SpreadStore
from .storage_service import DirectoryBlobStore, KeyValueState, MemoryBlobStore

__all__ = [
    'ConstraintService', 'DirectoryBlobStore', 'GeometryService', 'HistoryStack',
    'ImageService', 'KeyValueState', 'LayerService', 'MemoryBlobStore', 'PhotoService',
    'PreferencesService', 'SpreadNavigator', 'SpreadStore',
]
