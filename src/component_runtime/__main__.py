"""CLI entrypoint for the component runtime preview."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from importlib import metadata
from pathlib import Path
import sys

from .config import ensure_config_dir, load_config
from .exceptions import DefinitionLoadError
from .loader import load_definitions


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="component-runtime",
        description="Render component definitions and run their event handlers",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to config.toml")
    parser.add_argument(
        "--mode",
        choices=("edit", "preview"),
        default=None,
        help="Start in edit or preview mode (overrides runtime.mode)",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Load the definitions, print warnings and exit",
    )
    parser.add_argument("definitions", nargs="?", type=Path, help="JSON or TOML definitions file")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Handle CLI flags, then validate definitions or run the preview app."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("component-runtime")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"component-runtime {version}")
        return 0

    if args.definitions is None:
        parser.error("the definitions file is required")

    if args.validate:
        config = load_config(args.config)
        try:
            loaded = load_definitions(
                args.definitions,
                validate_handlers=bool(config["runtime"]["validate_handlers"]),
            )
        except DefinitionLoadError as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
        for warning in loaded.warnings:
            print(f"warning: {warning}")
        print(
            f"{loaded.application_id}: {len(loaded.components)} components, "
            f"{len(loaded.warnings)} warnings"
        )
        return 0

    if args.config is None:
        ensure_config_dir()
    from .app import RuntimePreviewApp

    try:
        app = RuntimePreviewApp(args.definitions, config_path=args.config, mode=args.mode)
    except DefinitionLoadError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    app.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
