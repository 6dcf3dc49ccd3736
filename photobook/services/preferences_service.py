"""
Preferences Service - Manages user preference persistence.

Zoom level, theme and book length are kept in the key-value state so the
editor reopens the way it was left.
"""

import logging

from ..config import PREFERENCES_STATE_KEY
from ..models import EditorPreferences
from .storage_service import KeyValueState

logger = logging.getLogger(__name__)


class PreferencesService:
    """
    Loads and saves ``EditorPreferences``.

    Provides sensible defaults when nothing has been saved yet or the saved
    entry is invalid.
    """

    def __init__(self, state: KeyValueState):
        self.state = state

    def load(self) -> EditorPreferences:
        """
        Load preferences.

        Returns:
            EditorPreferences with saved settings, or defaults if none are stored

        Note:
            Invalid entries are logged and replaced by defaults.
        """
        data = self.state.get(PREFERENCES_STATE_KEY)
        if data is None:
            return EditorPreferences()

        try:
            return EditorPreferences.from_dict(data)

        except (AttributeError, TypeError, ValueError) as e:
            logger.warning("Ignoring invalid preferences %r: %s", data, e)
            return EditorPreferences()

    def save(self, preferences: EditorPreferences) -> bool:
        """
        Save preferences.

        Note:
            Saving is best-effort; the editor works even if it fails.
        """
        return self.state.set(PREFERENCES_STATE_KEY, preferences.to_dict())

    def reset_to_defaults(self) -> bool:
        """
        Forget saved preferences.

        Returns:
            True if preferences were stored and removed
        """
        return self.state.remove(PREFERENCES_STATE_KEY)
