"""CLI interface for power-redact.

Usage:
    # Scan an HTML file and print it with redaction spans
    power-redact scan page.html

    # Print the file with every redaction masked (█ runs)
    power-redact export page.html

    # Edit the persisted settings
    power-redact add-pattern confidential
    power-redact add-exclude support@example.com
    power-redact settings

Settings are persisted in SQLite so they survive across calls.
"""

from __future__ import annotations
import argparse
import json
import logging
import os
import sys
from pathlib import Path

from .document import parse_html, to_html
from .engine import PowerRedact
from .settings import (
    RedactionSettings,
    SettingsStore,
    SqliteStore,
    load_defaults_from_yaml,
    settings_to_dict,
)

DEFAULT_DB = os.environ.get(
    "POWER_REDACT_DB",
    str(Path.home() / ".power-redact" / "settings.db"),
)


def _defaults(args: argparse.Namespace) -> RedactionSettings | None:
    if args.config:
        return load_defaults_from_yaml(args.config)
    return None


def _open_store(args: argparse.Namespace) -> tuple[SqliteStore, SettingsStore]:
    backend = SqliteStore(args.db)
    store = SettingsStore(backend, defaults=_defaults(args))
    store.load()
    return backend, store


def _read_document(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _run_engine(args: argparse.Namespace) -> PowerRedact:
    backend = SqliteStore(args.db)
    try:
        engine = PowerRedact(parse_html(_read_document(args.file)), backend, defaults=_defaults(args))
        engine.init()
    finally:
        backend.close()
    return engine


def cmd_scan(args: argparse.Namespace) -> None:
    """Print the document with redaction spans."""
    engine = _run_engine(args)
    sys.stdout.write(to_html(engine.root))
    sys.stdout.write("\n")
    sys.stderr.write(f"{len(engine.registry)} redactions\n")


def cmd_export(args: argparse.Namespace) -> None:
    """Print the document with redactions masked."""
    engine = _run_engine(args)
    sys.stdout.write(engine.export_redacted_content())
    sys.stdout.write("\n")


def cmd_settings(args: argparse.Namespace) -> None:
    """Dump the effective settings as JSON."""
    backend, store = _open_store(args)
    json.dump(settings_to_dict(store.settings), sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    backend.close()


def _report(changed: bool, what: str) -> None:
    if not changed:
        sys.stderr.write(f"{what}: nothing changed\n")


def cmd_add_pattern(args: argparse.Namespace) -> None:
    backend, store = _open_store(args)
    changed = store.add_custom_pattern(args.term)
    if changed:
        store.save()
    _report(changed, "add-pattern")
    backend.close()


def cmd_add_exclude(args: argparse.Namespace) -> None:
    backend, store = _open_store(args)
    changed = store.add_exclude_term(args.term)
    if changed:
        store.save()
    _report(changed, "add-exclude")
    backend.close()


def cmd_remove_pattern(args: argparse.Namespace) -> None:
    backend, store = _open_store(args)
    changed = store.remove_custom_pattern(args.index)
    if changed:
        store.save()
    _report(changed, "remove-pattern")
    backend.close()


def cmd_remove_exclude(args: argparse.Namespace) -> None:
    backend, store = _open_store(args)
    changed = store.remove_exclude_term(args.index)
    if changed:
        store.save()
    _report(changed, "remove-exclude")
    backend.close()


def cmd_reset(args: argparse.Namespace) -> None:
    """Drop persisted settings."""
    backend, store = _open_store(args)
    store.reset()
    sys.stderr.write("Settings reset to defaults\n")
    backend.close()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="power-redact",
        description="Redact sensitive text in HTML documents",
    )
    parser.add_argument("--db", default=DEFAULT_DB, help="SQLite settings path")
    parser.add_argument("--config", default=None, help="YAML file with default settings")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], default="WARNING")

    sub = parser.add_subparsers(dest="command", required=True)
    p = sub.add_parser("scan", help="Scan a document and print it with spans")
    p.add_argument("file", help="HTML file, or - for stdin")
    p = sub.add_parser("export", help="Print a document with redactions masked")
    p.add_argument("file", help="HTML file, or - for stdin")
    sub.add_parser("settings", help="Show settings")
    p = sub.add_parser("add-pattern", help="Add a keyword or phrase to redact")
    p.add_argument("term")
    p = sub.add_parser("add-exclude", help="Add a term that is never redacted")
    p.add_argument("term")
    p = sub.add_parser("remove-pattern", help="Remove a custom pattern by index")
    p.add_argument("index", type=int)
    p = sub.add_parser("remove-exclude", help="Remove an exclude term by index")
    p.add_argument("index", type=int)
    sub.add_parser("reset", help="Reset settings to defaults")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    cmds = {
        "scan": cmd_scan,
        "export": cmd_export,
        "settings": cmd_settings,
        "add-pattern": cmd_add_pattern,
        "add-exclude": cmd_add_exclude,
        "remove-pattern": cmd_remove_pattern,
        "remove-exclude": cmd_remove_exclude,
        "reset": cmd_reset,
    }
    cmds[args.command](args)


if __name__ == "__main__":
    main()
