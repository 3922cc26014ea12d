from __future__ import annotations

from pathlib import Path
from typing import Optional
import os
import sys

from loguru import logger

BASE_DIR = Path(__file__).resolve().parent

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _env_path(name: str) -> Optional[Path]:
	raw = os.environ.get(name)
	if not raw or not str(raw).strip():
		return None
	return Path(str(raw)).expanduser().resolve()


def _env_flag(name: str, default: bool) -> bool:
	raw = (os.getenv(name) or "").strip().lower()
	if raw in _TRUE:
		return True
	if raw in _FALSE:
		return False
	return default


def get_data_root() -> Path:
	"""Base data root for temp files and the export event log."""
	root = _env_path("HTMLTABLE_DATA_ROOT")
	if root is not None:
		return root
	return BASE_DIR / "data"


def get_temp_root() -> Path:
	root = _env_path("HTMLTABLE_TEMP_ROOT")
	if root is not None:
		return root
	return get_data_root() / "temp"


def get_observability_root() -> Path:
	root = _env_path("HTMLTABLE_OBSERVABILITY_ROOT")
	if root is not None:
		return root
	return get_data_root() / "observability"


def get_resources_dir() -> Path:
	root = _env_path("HTMLTABLE_RESOURCES_DIR")
	if root is not None:
		return root
	return BASE_DIR / "resources"


def get_debug_mode() -> bool:
	return _env_flag("HTMLTABLE_DEBUG", False)


def get_log_level(default: str = "INFO") -> str:
	if get_debug_mode():
		return "DEBUG"
	raw = (os.getenv("HTMLTABLE_LOG_LEVEL") or "").strip().upper()
	return raw or default


def get_repair_tool_enabled() -> bool:
	return _env_flag("HTMLTABLE_REPAIR_TOOL", True)


def get_numeric_entities() -> bool:
	return _env_flag("HTMLTABLE_NUMERIC_ENTITIES", True)


def get_allow_table_tags() -> bool:
	return _env_flag("HTMLTABLE_ALLOW_TABLE_TAGS", True)


def get_allow_paragraph() -> bool:
	return _env_flag("HTMLTABLE_ALLOW_PARAGRAPH", True)


def get_category_passthrough() -> bool:
	return _env_flag("HTMLTABLE_CATEGORY_PASSTHROUGH", True)


def configure_logging(level: Optional[str] = None) -> None:
	"""Route loguru output to stderr at the configured level."""
	logger.remove()
	logger.add(sys.stderr, level=level or get_log_level())
