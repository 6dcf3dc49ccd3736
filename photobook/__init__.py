"""
Photo-book spread editor.

This package contains the page-layout engine behind the photo-book editor:
spread geometry, object constraints, per-spread persistence, layers and
undo history.
"""

__version__ = "1.0.0"
