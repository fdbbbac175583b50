"""
Editor settings munging

The remote transport reads two settings before it connects: the platform of
each host and its own connect timeout (it ignores ConnectTimeout in the SSH
config). Both are written straight into the settings JSON file.
"""
import json
from pathlib import Path
from typing import Any, Dict

from ...core.constants import CONNECT_TIMEOUT_SETTING, MIN_CONNECT_TIMEOUT, REMOTE_PLATFORM_SETTING
from ...core.logging import get_logger

logger = get_logger(__name__)


def apply_remote_settings(
    settings: Dict[str, Any],
    host: str,
    operating_system: str,
    min_connect_timeout: int = MIN_CONNECT_TIMEOUT,
) -> bool:
    """
    Set the platform for ``host`` and raise the connect timeout in place.

    Returns:
        True if anything changed
    """
    changed = False

    platforms = settings.get(REMOTE_PLATFORM_SETTING)
    if not isinstance(platforms, dict):
        platforms = {}
    if platforms.get(host) != operating_system:
        platforms = dict(platforms)
        platforms[host] = operating_system
        settings[REMOTE_PLATFORM_SETTING] = platforms
        changed = True

    timeout = settings.get(CONNECT_TIMEOUT_SETTING)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout < min_connect_timeout:
        settings[CONNECT_TIMEOUT_SETTING] = min_connect_timeout
        changed = True

    return changed


def update_editor_settings(path: Path, host: str, operating_system: str) -> bool:
    """
    Best-effort update of the settings file; failures are logged, not raised.

    Returns:
        True if the file was rewritten
    """
    try:
        content = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        content = ""
    except OSError as e:
        logger.warning(f"Failed to read settings {path}: {e}")
        return False

    try:
        settings = json.loads(content) if content.strip() else {}
    except ValueError as e:
        logger.warning(f"Not modifying settings {path}, unable to parse it: {e}")
        return False
    if not isinstance(settings, dict):
        logger.warning(f"Not modifying settings {path}, it is not a JSON object")
        return False

    if not apply_remote_settings(settings, host, operating_system):
        return False

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(settings, indent=4) + "\n", encoding="utf-8")
    except OSError as e:
        # Read-only settings (e.g. managed by a home-manager) are not fatal
        logger.warning(f"Failed to configure settings {path}: {e}")
        return False

    logger.info(f"Updated {REMOTE_PLATFORM_SETTING} and {CONNECT_TIMEOUT_SETTING} in {path}")
    return True
