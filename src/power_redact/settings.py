"""Settings store — the persisted configuration behind the pattern set.

The blob is a JSON object under one key in a key-value store:

    {
      "version": 2,
      "enabled": true,
      "autoRedactPII": true,
      "customPatterns": ["confidential", {"regex": "PRJ-\\d+", "ignoreCase": false, "flags": 0}],
      "excludeTerms": ["support@example.com"],
      "revealBehavior": "cursor",
      "blockStyle": true,
      "touchSupport": true,
      "usePresidio": false
    }

Loading is an explicit shallow merge over defaults: a key present in the
blob replaces the default whole (lists included).  Saving does not re-scan;
the caller re-runs auto-redaction.

Defaults can also come from YAML:

    power_redact:
      auto_redact_pii: true
      custom_patterns:
        - confidential
        - regex: "PRJ-\\d+"
      exclude_terms:
        - support@example.com
      reveal_behavior: hover
"""

from __future__ import annotations
import json
import logging
import re
import sqlite3
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Protocol

from .errors import PersistenceParseError
from .patterns import CustomPattern
from .types import RegexPattern, RevealBehavior

logger = logging.getLogger(__name__)

SETTINGS_KEY = "power-redact-settings"
SCHEMA_VERSION = 2


@dataclass
class RedactionSettings:
    """Configuration for auto-redaction and display."""
    enabled: bool = True
    auto_redact_pii: bool = True          # built-in SSN/card/email/phone rules
    custom_patterns: list[CustomPattern] = field(default_factory=list)
    exclude_terms: list[str] = field(default_factory=list)
    reveal_behavior: RevealBehavior = RevealBehavior.CURSOR
    block_style: bool = True
    touch_support: bool = True
    use_presidio: bool = False            # optional NER layer

    def __post_init__(self) -> None:
        # compiled patterns are held in source form so they persist intact
        self.custom_patterns = [
            RegexPattern.from_compiled(p) if isinstance(p, re.Pattern) else p
            for p in self.custom_patterns
        ]

    def copy(self) -> RedactionSettings:
        return replace(
            self,
            custom_patterns=list(self.custom_patterns),
            exclude_terms=list(self.exclude_terms),
        )


# settings field -> blob key
_BLOB_KEYS: dict[str, str] = {
    "enabled": "enabled",
    "auto_redact_pii": "autoRedactPII",
    "custom_patterns": "customPatterns",
    "exclude_terms": "excludeTerms",
    "reveal_behavior": "revealBehavior",
    "block_style": "blockStyle",
    "touch_support": "touchSupport",
    "use_presidio": "usePresidio",
}
_BOOL_FIELDS = frozenset({"enabled", "auto_redact_pii", "block_style", "touch_support", "use_presidio"})


# ------------------------------------------------------------------
# Encoding
# ------------------------------------------------------------------

def _encode_pattern(entry: CustomPattern) -> str | dict[str, Any]:
    if isinstance(entry, str):
        return entry
    if isinstance(entry, re.Pattern):
        entry = RegexPattern.from_compiled(entry)
    return {"regex": entry.source, "ignoreCase": entry.ignore_case, "flags": entry.flags}


def _decode_pattern(raw: Any) -> CustomPattern | None:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, dict) and isinstance(raw.get("regex"), str):
        ignore_case = raw.get("ignoreCase", raw.get("ignore_case", False))
        flags = raw.get("flags", 0)
        if not isinstance(flags, int) or isinstance(flags, bool):
            return None
        return RegexPattern(raw["regex"], bool(ignore_case), flags)
    return None


def settings_to_dict(settings: RedactionSettings) -> dict[str, Any]:
    """Blob form, camelCase keys, with the schema version."""
    return {
        "version": SCHEMA_VERSION,
        "enabled": settings.enabled,
        "autoRedactPII": settings.auto_redact_pii,
        "customPatterns": [_encode_pattern(p) for p in settings.custom_patterns],
        "excludeTerms": list(settings.exclude_terms),
        "revealBehavior": RevealBehavior(settings.reveal_behavior).value,
        "blockStyle": settings.block_style,
        "touchSupport": settings.touch_support,
        "usePresidio": settings.use_presidio,
    }


def _coerce(name: str, value: Any) -> Any:
    """Validate one field value.  Raises ValueError if unusable."""
    if name in _BOOL_FIELDS:
        if not isinstance(value, bool):
            raise ValueError(f"expected bool, got {type(value).__name__}")
        return value
    if name == "reveal_behavior":
        return RevealBehavior(value)
    if name == "custom_patterns":
        if not isinstance(value, list):
            raise ValueError("expected a list")
        out: list[CustomPattern] = []
        for raw in value:
            decoded = _decode_pattern(raw)
            if decoded is None:
                logger.warning("Dropping unreadable custom pattern %r", raw)
                continue
            out.append(decoded)
        return out
    if name == "exclude_terms":
        if not isinstance(value, list):
            raise ValueError("expected a list")
        terms = [t for t in value if isinstance(t, str)]
        if len(terms) != len(value):
            logger.warning("Dropping %d non-string exclude terms", len(value) - len(terms))
        return terms
    raise ValueError(f"unknown field {name}")


def merge_settings(
    base: RedactionSettings,
    overrides: dict[str, Any],
    *,
    keys: dict[str, str] | None = None,
) -> RedactionSettings:
    """Shallow merge: each usable key replaces the base value whole."""
    keys = keys or _BLOB_KEYS
    merged = base.copy()
    known = set(keys.values()) | {"version"}
    for name, key in keys.items():
        if key not in overrides:
            continue
        try:
            setattr(merged, name, _coerce(name, overrides[key]))
        except ValueError as exc:
            logger.warning("Ignoring setting %s: %s", key, exc)
    for key in overrides:
        if key not in known:
            logger.warning("Ignoring unknown setting %r", key)
    return merged


def migrate(blob: dict[str, Any]) -> dict[str, Any]:
    """Upgrade a blob to SCHEMA_VERSION.

    Version 1 blobs carry no version field; their keys are the same as
    version 2 minus ``usePresidio``.
    """
    version = blob.get("version", 1)
    if not isinstance(version, int) or isinstance(version, bool):
        raise PersistenceParseError(f"bad version field {version!r}")
    if version > SCHEMA_VERSION:
        logger.warning("Settings blob version %d is newer than %d; reading known keys",
                       version, SCHEMA_VERSION)
        return blob
    out = dict(blob)
    if version < 2:
        out.setdefault("usePresidio", False)
    out["version"] = SCHEMA_VERSION
    return out


def parse_blob(raw: str) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise PersistenceParseError(f"settings blob is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise PersistenceParseError(f"settings blob is a {type(data).__name__}, not an object")
    return migrate(data)


# ------------------------------------------------------------------
# Key-value backends
# ------------------------------------------------------------------

class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str) -> None: ...
    def delete(self, key: str) -> None: ...


class MemoryStore:
    """In-process key-value store."""

    __slots__ = ("_data",)

    def __init__(self, data: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(data or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


_SCHEMA = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at REAL NOT NULL DEFAULT (julianday('now'))
);
"""


class SqliteStore:
    """Key-value store backed by SQLite — survives process restarts."""

    __slots__ = ("_db",)

    def __init__(self, db_path: str | Path = "power-redact.db") -> None:
        db_path = Path(db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(str(db_path))
        self._db.executescript(_SCHEMA)

    def get(self, key: str) -> str | None:
        row = self._db.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        self._db.execute(
            "INSERT OR REPLACE INTO kv (key, value, updated_at) VALUES (?, ?, julianday('now'))",
            (key, value),
        )
        self._db.commit()

    def delete(self, key: str) -> None:
        self._db.execute("DELETE FROM kv WHERE key = ?", (key,))
        self._db.commit()

    def close(self) -> None:
        self._db.close()


# ------------------------------------------------------------------
# Store
# ------------------------------------------------------------------

class SettingsStore:
    """Loads, mutates and persists one RedactionSettings."""

    def __init__(
        self,
        backend: KeyValueStore | None = None,
        *,
        key: str = SETTINGS_KEY,
        defaults: RedactionSettings | None = None,
    ) -> None:
        self.backend = backend if backend is not None else MemoryStore()
        self.key = key
        self.defaults = defaults or RedactionSettings()
        self.settings = self.defaults.copy()

    def load(self) -> RedactionSettings:
        """Read the blob and merge it over defaults.  Never raises."""
        raw = self.backend.get(self.key)
        if raw is None:
            self.settings = self.defaults.copy()
            return self.settings
        try:
            blob = parse_blob(raw)
        except PersistenceParseError as exc:
            logger.warning("Falling back to default settings: %s", exc)
            self.settings = self.defaults.copy()
            return self.settings
        self.settings = merge_settings(self.defaults, blob)
        return self.settings

    def save(self, settings: RedactionSettings | None = None) -> None:
        if settings is not None:
            self.settings = settings
        self.backend.set(self.key, json.dumps(settings_to_dict(self.settings), ensure_ascii=False))

    def reset(self) -> RedactionSettings:
        self.backend.delete(self.key)
        self.settings = self.defaults.copy()
        return self.settings

    # ------------------------------------------------------------------
    # List editing (no-op on empty or duplicate input)
    # ------------------------------------------------------------------

    def add_custom_pattern(self, term: CustomPattern) -> bool:
        if isinstance(term, str):
            term = term.strip()
            if not term:
                return False
        elif isinstance(term, re.Pattern):
            term = RegexPattern.from_compiled(term)
        if isinstance(term, RegexPattern) and not term.source:
            return False
        if term in self.settings.custom_patterns:
            return False
        self.settings.custom_patterns.append(term)
        return True

    def add_exclude_term(self, term: str) -> bool:
        if not isinstance(term, str):
            return False
        term = term.strip()
        if not term or term in self.settings.exclude_terms:
            return False
        self.settings.exclude_terms.append(term)
        return True

    def remove_custom_pattern(self, index: int) -> bool:
        return _pop(self.settings.custom_patterns, index)

    def remove_exclude_term(self, index: int) -> bool:
        return _pop(self.settings.exclude_terms, index)


def _pop(items: list, index: int) -> bool:
    if not 0 <= index < len(items):
        return False
    del items[index]
    return True


# ------------------------------------------------------------------
# YAML defaults
# ------------------------------------------------------------------

_YAML_KEYS = {f.name: f.name for f in fields(RedactionSettings)}


def settings_from_dict(data: dict[str, Any]) -> RedactionSettings:
    """Build settings from a snake_case dict (from YAML or inline)."""
    # Support nested under "power_redact" key or flat
    if "power_redact" in data:
        data = data["power_redact"] or {}
    if not isinstance(data, dict):
        raise PersistenceParseError(f"expected a mapping of settings, got {type(data).__name__}")
    return merge_settings(RedactionSettings(), data, keys=_YAML_KEYS)


def load_defaults_from_yaml(path: str | Path) -> RedactionSettings:
    """Load default settings from a YAML file."""
    import yaml
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise PersistenceParseError(f"{path}: expected a mapping at top level")
    return settings_from_dict(data)
