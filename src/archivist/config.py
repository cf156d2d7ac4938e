"""Archivist configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (ARCHIVIST_EMBEDDING_MODEL, ARCHIVIST_LLM_MODEL,
                             ARCHIVIST_DB_PATH)
  3. Per-project archivist.yaml  (current directory)
  4. Global ~/.archivist/config.yaml  (defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from archivist.errors import ArchivistError

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".archivist"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "archivist.yaml"

# Key names that look like credentials. Does not match max_tokens.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["embedding", "llm", "db", "search", "ingestion", "extraction", "prompts"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ArchivistError, ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class EmbeddingCfg:
    """Embedding provider (archivist.yaml: embedding:)."""

    model: str = "gemini/text-embedding-004"
    dimensions: int = 768
    concurrency: int = 10
    max_attempts: int = 3


@dataclass
class LLMCfg:
    """Language model used for extraction (archivist.yaml: llm:)."""

    model: str = "gemini/gemini-2.5-flash-lite"
    temperature: float = 0.7
    max_tokens: int = 2000
    max_attempts: int = 3


@dataclass
class DbCfg:
    path: str = "./data/archive.db"


@dataclass
class ContextWindowCfg:
    before: int = 2
    after: int = 1


@dataclass
class SearchCfg:
    """Search defaults (archivist.yaml: search:)."""

    default_limit: int = 20
    context_window: ContextWindowCfg = field(default_factory=ContextWindowCfg)


@dataclass
class IngestionCfg:
    """Ingestion pipeline (archivist.yaml: ingestion:)."""

    max_chars: int = 3000
    concurrency: int = 10
    batch_size: int = 50


@dataclass
class ExtractionCfg:
    concurrency: int = 10


@dataclass
class ArchivistConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    llm: LLMCfg = field(default_factory=LLMCfg)
    db: DbCfg = field(default_factory=DbCfg)
    search: SearchCfg = field(default_factory=SearchCfg)
    ingestion: IngestionCfg = field(default_factory=IngestionCfg)
    extraction: ExtractionCfg = field(default_factory=ExtractionCfg)
    prompts: dict[str, str] = field(default_factory=dict)

    @property
    def db_path(self) -> Path:
        return Path(self.db.path).expanduser()


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}', ignored.",
                UserWarning,
                stacklevel=4,
            )


def _validate(cfg: ArchivistConfig) -> None:
    positive = {
        "embedding.dimensions": cfg.embedding.dimensions,
        "embedding.concurrency": cfg.embedding.concurrency,
        "embedding.max_attempts": cfg.embedding.max_attempts,
        "llm.max_attempts": cfg.llm.max_attempts,
        "ingestion.max_chars": cfg.ingestion.max_chars,
        "ingestion.concurrency": cfg.ingestion.concurrency,
        "ingestion.batch_size": cfg.ingestion.batch_size,
        "extraction.concurrency": cfg.extraction.concurrency,
    }
    for name, value in positive.items():
        if value < 1:
            raise ConfigError(f"{name} must be >= 1, got {value}")
    window = cfg.search.context_window
    if window.before < 0 or window.after < 0:
        raise ConfigError("search.context_window values must be >= 0")


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse '{path}': {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"'{path}' must contain a mapping at the top level")
    return data


def _cfg_from_dict(data: dict[str, Any]) -> ArchivistConfig:
    """Build an *ArchivistConfig* from a merged raw YAML dict."""
    cfg = ArchivistConfig()

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            model=str(e.get("model", cfg.embedding.model)),
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            concurrency=int(e.get("concurrency", cfg.embedding.concurrency)),
            max_attempts=int(e.get("max_attempts", cfg.embedding.max_attempts)),
        )

    if "llm" in data:
        m = data["llm"] or {}
        cfg.llm = LLMCfg(
            model=str(m.get("model", cfg.llm.model)),
            temperature=float(m.get("temperature", cfg.llm.temperature)),
            max_tokens=int(m.get("max_tokens", cfg.llm.max_tokens)),
            max_attempts=int(m.get("max_attempts", cfg.llm.max_attempts)),
        )

    if "db" in data:
        d = data["db"] or {}
        cfg.db = DbCfg(path=str(d.get("path", cfg.db.path)))

    if "search" in data:
        s = data["search"] or {}
        w = s.get("context_window") or {}
        cfg.search = SearchCfg(
            default_limit=int(s.get("default_limit", cfg.search.default_limit)),
            context_window=ContextWindowCfg(
                before=int(w.get("before", cfg.search.context_window.before)),
                after=int(w.get("after", cfg.search.context_window.after)),
            ),
        )

    if "ingestion" in data:
        i = data["ingestion"] or {}
        cfg.ingestion = IngestionCfg(
            max_chars=int(i.get("max_chars", cfg.ingestion.max_chars)),
            concurrency=int(i.get("concurrency", cfg.ingestion.concurrency)),
            batch_size=int(i.get("batch_size", cfg.ingestion.batch_size)),
        )

    if "extraction" in data:
        x = data["extraction"] or {}
        cfg.extraction = ExtractionCfg(
            concurrency=int(x.get("concurrency", cfg.extraction.concurrency)),
        )

    if "prompts" in data:
        cfg.prompts = {str(k): str(v) for k, v in (data["prompts"] or {}).items() if v}

    return cfg


def _apply_env_overrides(cfg: ArchivistConfig) -> ArchivistConfig:
    """Apply ARCHIVIST_* environment variable overrides."""
    if model := os.environ.get("ARCHIVIST_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("ARCHIVIST_LLM_MODEL"):
        cfg.llm.model = model
    if path := os.environ.get("ARCHIVIST_DB_PATH"):
        cfg.db.path = path
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> ArchivistConfig:
    """Load and return a merged *ArchivistConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *archivist.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If the global config contains API-key-like fields, or a
            numeric setting is out of range.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    try:
        cfg = _cfg_from_dict(merged)
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigError(f"Invalid configuration value: {exc}") from exc

    cfg = _apply_env_overrides(cfg)
    _validate(cfg)
    return cfg
