"""Engine settings persisted in ``~/.codecontext/config.toml``."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml

from . import config

logger = logging.getLogger(__name__)


DEFAULT_ENGINE_CONFIG: Dict[str, Any] = {
    "include_patterns": list(config.DEFAULT_INCLUDE_PATTERNS),
    "exclude_patterns": list(config.DEFAULT_EXCLUDE_PATTERNS),
    "graph_patterns": list(config.GRAPH_SOURCE_PATTERNS),
    "search_patterns": list(config.SEARCH_SOURCE_PATTERNS),
    "cache_dir": config.CACHE_DIR_NAME,
    "file_cache_ttl": config.FILE_CACHE_TTL,
    "index_cache_ttl": config.INDEX_CACHE_TTL,
    "extractor_cache_ttl": config.EXTRACTOR_CACHE_TTL,
    "max_workers": 1,
    "min_relevance": 0.1,
}


def load_full_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    path = config_file or config.CONFIG_FILE
    if not path.exists():
        return {}
    try:
        return toml.loads(path.read_text(encoding="utf-8"))
    except (OSError, toml.TomlDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}


def load_engine_config(config_file: Optional[Path] = None) -> Dict[str, Any]:
    """Return the ``[engine]`` table merged over the defaults."""
    merged = {key: _copy(value) for key, value in DEFAULT_ENGINE_CONFIG.items()}
    section = load_full_config(config_file).get("engine", {})
    if not isinstance(section, dict):
        return merged
    for key, value in section.items():
        if key in DEFAULT_ENGINE_CONFIG:
            merged[key] = value
        else:
            logger.debug("Unknown engine setting '%s' ignored", key)
    return merged


def save_engine_config(config_file: Optional[Path] = None, **values: Any) -> bool:
    """Update the ``[engine]`` table, preserving other sections.

    Returns:
        True if saved successfully, False otherwise
    """
    path = config_file or config.CONFIG_FILE
    unknown = [key for key in values if key not in DEFAULT_ENGINE_CONFIG]
    if unknown:
        logger.warning("Refusing to save unknown engine settings: %s", ", ".join(unknown))
        return False

    full = load_full_config(path)
    engine = full.get("engine")
    if not isinstance(engine, dict):
        engine = {}
    engine.update(values)
    full["engine"] = engine
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(toml.dumps(full), encoding="utf-8")
    except OSError as exc:
        logger.warning("Could not write config %s: %s", path, exc)
        return False
    return True


def coerce_setting(key: str, raw: str) -> Any:
    """Convert a CLI string into the type of the default for *key*."""
    if key not in DEFAULT_ENGINE_CONFIG:
        raise KeyError(key)
    default = DEFAULT_ENGINE_CONFIG[key]
    if isinstance(default, list):
        return [part.strip() for part in raw.split(",") if part.strip()]
    if isinstance(default, bool):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


@dataclass
class EngineSettings:
    include_patterns: List[str] = field(default_factory=lambda: list(config.DEFAULT_INCLUDE_PATTERNS))
    exclude_patterns: List[str] = field(default_factory=lambda: list(config.DEFAULT_EXCLUDE_PATTERNS))
    graph_patterns: List[str] = field(default_factory=lambda: list(config.GRAPH_SOURCE_PATTERNS))
    search_patterns: List[str] = field(default_factory=lambda: list(config.SEARCH_SOURCE_PATTERNS))
    cache_dir: str = config.CACHE_DIR_NAME
    file_cache_ttl: float = config.FILE_CACHE_TTL
    index_cache_ttl: float = config.INDEX_CACHE_TTL
    extractor_cache_ttl: float = config.EXTRACTOR_CACHE_TTL
    max_workers: int = 1
    min_relevance: float = 0.1

    @classmethod
    def from_config(cls, config_file: Optional[Path] = None) -> "EngineSettings":
        values = load_engine_config(config_file)
        return cls(
            include_patterns=list(values["include_patterns"]),
            exclude_patterns=list(values["exclude_patterns"]),
            graph_patterns=list(values["graph_patterns"]),
            search_patterns=list(values["search_patterns"]),
            cache_dir=str(values["cache_dir"]),
            file_cache_ttl=float(values["file_cache_ttl"]),
            index_cache_ttl=float(values["index_cache_ttl"]),
            extractor_cache_ttl=float(values["extractor_cache_ttl"]),
            max_workers=max(1, int(values["max_workers"])),
            min_relevance=float(values["min_relevance"]),
        )


def _copy(value: Any) -> Any:
    return list(value) if isinstance(value, list) else value
