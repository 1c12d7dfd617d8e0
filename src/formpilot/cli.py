"""
FormPilot CLI

Command-line interface for checking form packs and running mappings
outside a host application.

Usage:
    formpilot validate packs/simplified_application.yaml
    formpilot prefill packs/simplified_application.yaml loan.json --context ctx.json
    formpilot prefill packs/simplified_application.yaml saaf.json --pattern retail
    formpilot build packs/simplified_application.yaml values.json
    formpilot visibility packs/simplified_application.yaml values.json

Every command prints one JSON document on stdout. Errors are printed as
JSON on stderr.

Exit Codes:
    0   OK              - Command succeeded
    1   INVALID         - Pack rejected, or a required target is missing
    2   INPUT_INVALID   - Input file missing or unreadable
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Optional, Sequence

import yaml

from . import __version__
from .config import EngineOptions
from .engine import FormEngine
from .exceptions import FormPilotError
from .log import configure_logging
from .packs import FormPackLoader


class ExitCode:
    """Exit codes for pipeline integration."""
    OK = 0
    INVALID = 1
    INPUT_INVALID = 2


class InputError(Exception):
    """An input document could not be read."""


# =============================================================================
# Helpers
# =============================================================================

def _read_document(path: str) -> Any:
    """Read a JSON or YAML input document."""
    source = Path(path)
    try:
        with open(source, "r", encoding="utf-8") as f:
            if source.suffix.lower() in {".yaml", ".yml"}:
                return yaml.safe_load(f)
            return json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise InputError(f"Cannot read {path}: {e}") from e


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


def _emit_error(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, indent=2, default=str), file=sys.stderr)


def _load_engine(args: argparse.Namespace, options: EngineOptions) -> FormEngine:
    loader = FormPackLoader(
        strict_version=options.strict_version,
        max_condition_depth=options.max_condition_depth,
    )
    return FormEngine(
        loader.load(args.pack),
        options,
        loader.transforms,
        pattern=getattr(args, "pattern", None),
    )


# =============================================================================
# Commands
# =============================================================================

def cmd_validate(args: argparse.Namespace, options: EngineOptions) -> int:
    """Load a pack and print its summary."""
    engine = _load_engine(args, options)
    form = engine.form
    _emit({
        "valid": True,
        "form_id": form.id,
        "version": form.metadata.version,
        "pack_hash": form.pack_hash,
        "steps": [s.id for s in form.steps],
        "fields": len(form.field_ids),
        "array_templates": {
            t.name: {"count_field": t.count_field, "max_count": t.max_count}
            for t in form.array_templates
        },
        "inbound_rules": len(form.transformations.inbound),
        "outbound_rules": len(form.transformations.outbound),
        "transforms": sorted(form.transformations.transform_names),
    })
    return ExitCode.OK


def cmd_prefill(args: argparse.Namespace, options: EngineOptions) -> int:
    """Map a source document to flat form values."""
    engine = _load_engine(args, options)
    document = _read_document(args.source)
    context = _read_document(args.context) if args.context else None
    _emit(engine.prefill(document, context).to_dict())
    return ExitCode.OK


def cmd_build(args: argparse.Namespace, options: EngineOptions) -> int:
    """Map flat form values to the target document."""
    engine = _load_engine(args, options)
    values = _read_document(args.values)
    context = _read_document(args.context) if args.context else None
    result = engine.build(values, context, raise_on_missing=not args.collect)
    _emit(result.to_dict())
    return ExitCode.OK if result.success else ExitCode.INVALID


def cmd_visibility(args: argparse.Namespace, options: EngineOptions) -> int:
    """Print visible steps, visible fields and required fields."""
    engine = _load_engine(args, options)
    values = _read_document(args.values)
    payload = engine.visibility(values).to_dict()
    payload["array_instances"] = {
        name: [f.id for f in instances]
        for name, instances in engine.expand_templates(values).items()
    }
    _emit(payload)
    return ExitCode.OK


# =============================================================================
# Entry Point
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="formpilot",
        description="FormPilot - declarative form mapping and rule engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Exit Codes:
  0   OK              Command succeeded
  1   INVALID         Pack rejected or required target missing
  2   INPUT_INVALID   Input file missing or unreadable

Settings are read from FORMPILOT_* environment variables.
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", help="Override FORMPILOT_LOG_LEVEL")
    parser.add_argument("--json-logs", action="store_true", help="Log JSON lines to stderr")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    validate_parser = subparsers.add_parser("validate", help="Validate a form pack")
    validate_parser.add_argument("pack", help="Form pack YAML/JSON file")
    validate_parser.set_defaults(func=cmd_validate)

    prefill_parser = subparsers.add_parser("prefill", help="Map a source document to form values")
    prefill_parser.add_argument("pack", help="Form pack YAML/JSON file")
    prefill_parser.add_argument("source", help="Source document (JSON or YAML)")
    prefill_parser.add_argument("--context", "-c", help="Context document (JSON or YAML)")
    prefill_parser.add_argument("--pattern", "-p",
                                help="Data preparation pattern (retail, ppfBroker, oaktree)")
    prefill_parser.set_defaults(func=cmd_prefill)

    build_cmd = subparsers.add_parser("build", help="Map form values to the target document")
    build_cmd.add_argument("pack", help="Form pack YAML/JSON file")
    build_cmd.add_argument("values", help="Flat form values (JSON or YAML)")
    build_cmd.add_argument("--context", "-c", help="Context document (JSON or YAML)")
    build_cmd.add_argument("--collect", action="store_true",
                           help="Report every missing required target instead of stopping")
    build_cmd.set_defaults(func=cmd_build)

    vis_parser = subparsers.add_parser("visibility", help="Show visible and required fields")
    vis_parser.add_argument("pack", help="Form pack YAML/JSON file")
    vis_parser.add_argument("values", help="Flat form values (JSON or YAML)")
    vis_parser.set_defaults(func=cmd_visibility)

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return ExitCode.INVALID

    try:
        options = EngineOptions.from_env()
        configure_logging(args.log_level or options.log_level, json_format=args.json_logs)
        return args.func(args, options)
    except InputError as e:
        _emit_error({"code": "FP_INPUT_INVALID", "message": str(e)})
        return ExitCode.INPUT_INVALID
    except FormPilotError as e:
        _emit_error(e.to_dict())
        return ExitCode.INVALID


if __name__ == "__main__":
    sys.exit(main())
