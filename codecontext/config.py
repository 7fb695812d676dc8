"""Configuration paths and defaults for the codecontext engine."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("CODECONTEXT_HOME", str(Path.home() / ".codecontext"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

# Project-local cache directory, relative to the indexed root
CACHE_DIR_NAME = ".codecontext/cache"
SEMANTIC_INDEX_CACHE = "semantic-index.json"
SEMANTIC_ITEMS_CACHE = "semantic-items.json"

FILE_CACHE_TTL = 5 * 60
INDEX_CACHE_TTL = 60 * 60
EXTRACTOR_CACHE_TTL = 30

DEFAULT_INCLUDE_PATTERNS = [
    "**/*.{ts,js,tsx,jsx,py,java,go,rs,rb,php}",
]

DEFAULT_EXCLUDE_PATTERNS = [
    "**/node_modules/**",
    "**/.git/**",
    "**/dist/**",
    "**/build/**",
]

# Sources scanned for the per-file symbol summary and the dependency graph
INDEX_SOURCE_PATTERNS = [
    "**/*.ts", "**/*.tsx", "**/*.js", "**/*.jsx",
    "**/*.py", "**/*.java", "**/*.go", "**/*.rs",
]

GRAPH_SOURCE_PATTERNS = ["**/*.ts", "**/*.tsx", "**/*.js", "**/*.jsx", "**/*.py"]

SEARCH_SOURCE_PATTERNS = ["**/*.ts", "**/*.js", "**/*.py", "**/*.md"]

SEARCH_EXTRA_EXCLUDES = ["**/*.min.js", "**/.codecontext/**"]
SEARCH_EXCLUDE_PATTERNS = DEFAULT_EXCLUDE_PATTERNS + SEARCH_EXTRA_EXCLUDES
