"""
Settings Module for Collection Scanner

Provides persistent storage for user preferences and per-user
calibration records using JSON. Settings are stored in config.json
in the working directory.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Any, Optional

from collection_scanner.vision import CalibrationError, CalibrationSettings, validate_settings

logger = logging.getLogger(__name__)

# Settings file location (project root)
SETTINGS_FILE = Path("config.json")

# Key under which calibration records are stored, per user id
CALIBRATION_KEY = "calibration"

# Default settings
DEFAULT_SETTINGS: Dict[str, Any] = {
    "debug_enabled": False,
    "user_id": "default",
    "text_engine": "tesseract",
}


def _read_file(path: Path) -> Optional[Dict[str, Any]]:
    """Read a JSON object from disk. Returns None if missing or invalid."""
    if not path.exists():
        return None

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Failed to read {path}: {e}")
        return None

    if not isinstance(data, dict):
        logger.warning(f"Ignoring {path}: expected a JSON object")
        return None
    return data


def _write_file(path: Path, data: Dict[str, Any]) -> bool:
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        return True
    except IOError as e:
        logger.error(f"Failed to write {path}: {e}")
        return False


def load_settings(path: Path = SETTINGS_FILE) -> Dict[str, Any]:
    """
    Load application preferences from config.json.

    Returns:
        Settings dictionary. Returns defaults if file missing or invalid.
    """
    data = _read_file(path)
    if data is None:
        logger.debug("Settings file not found or invalid, using defaults")
        return DEFAULT_SETTINGS.copy()

    # Merge with defaults to handle missing keys
    result = DEFAULT_SETTINGS.copy()
    result.update({k: v for k, v in data.items() if k != CALIBRATION_KEY})
    logger.debug(f"Settings loaded: {result}")
    return result


def save_settings(settings: Dict[str, Any], path: Path = SETTINGS_FILE) -> None:
    """
    Save application preferences to config.json.

    Calibration records already in the file are preserved.

    Args:
        settings: Settings dictionary to save
    """
    data = _read_file(path) or {}
    calibration = data.get(CALIBRATION_KEY)

    data = {k: v for k, v in settings.items() if k != CALIBRATION_KEY}
    if calibration is not None:
        data[CALIBRATION_KEY] = calibration

    if _write_file(path, data):
        logger.debug(f"Settings saved: {settings}")


class CalibrationStore:
    """
    Per-user calibration persistence.

    Records are flat dictionaries (CalibrationSettings.to_dict()) stored
    under the "calibration" key of the settings file, keyed by user id.
    """

    def __init__(self, path: Path = SETTINGS_FILE):
        self.path = Path(path)

    def load(self, user_id: str) -> Optional[CalibrationSettings]:
        """
        Load a user's calibration.

        Returns:
            CalibrationSettings, or None if the user has no saved
            calibration or the stored record is malformed
        """
        data = _read_file(self.path) or {}
        calibrations = data.get(CALIBRATION_KEY)
        record = calibrations.get(user_id) if isinstance(calibrations, dict) else None
        if record is None:
            logger.debug(f"No calibration saved for user '{user_id}'")
            return None
        if not isinstance(record, dict):
            logger.warning(f"Ignoring stored calibration for '{user_id}': not an object")
            return None

        try:
            settings = CalibrationSettings.from_dict(record)
            validate_settings(settings)
        except CalibrationError as e:
            logger.warning(f"Ignoring stored calibration for '{user_id}': {e}")
            return None

        logger.debug(f"Calibration loaded for '{user_id}'")
        return settings

    def save(self, user_id: str, settings: CalibrationSettings) -> bool:
        """
        Save a user's calibration, keeping other users and preferences.

        Returns:
            True on success, False if the file could not be written
        """
        data = _read_file(self.path) or {}
        calibrations = data.get(CALIBRATION_KEY)
        if not isinstance(calibrations, dict):
            calibrations = {}

        calibrations[user_id] = settings.to_dict()
        data[CALIBRATION_KEY] = calibrations

        if _write_file(self.path, data):
            logger.info(f"Calibration saved for '{user_id}'")
            return True
        return False
