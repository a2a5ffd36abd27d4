import logging
from typing import Any, Dict

logger = logging.getLogger("relay_service")

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Dict[str, Any]) -> None:
    """Apply `logging.level` from settings to the package logger."""
    level_name = str((settings.get("logging") or {}).get("level", "INFO")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.INFO
    if not logging.getLogger().handlers:
        logging.basicConfig(format=_FORMAT)
    logger.setLevel(level)
