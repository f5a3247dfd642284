"""processguard CLI entry point."""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path

from processguard.config import load_options
from processguard.manager import SettingsManager
from processguard.models import ValidationResult


def _prompt(message: str) -> bool:
    print(message)
    answer = input("Continue? [y/N] ").strip().lower()
    return answer in ("y", "yes")


def _print_result(result: ValidationResult) -> None:
    for error in result.errors:
        print(f"ERROR   {error.setting}: {error.message}")
        if error.suggestion:
            print(f"        → {error.suggestion}")
    for warning in result.warnings:
        print(f"WARNING {warning.setting}: {warning.message} ({warning.severity})")
    status = "valid" if result.valid else "invalid"
    print(f"\nConfiguration is {status}: {len(result.errors)} error(s), {len(result.warnings)} warning(s)")


def _read_json(path: Path) -> object:
    if not path.exists():
        print(f"Error: file not found: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON in {path}: {e}", file=sys.stderr)
        sys.exit(1)


# ── Commands ─────────────────────────────────────────────────────────────────


def _cmd_generate(manager: SettingsManager, args) -> int:
    print(json.dumps(manager.generate_server_config(), indent=2))
    return 0


def _cmd_validate(manager: SettingsManager, args) -> int:
    if args.file is None:
        result = manager.validate_configuration()
    else:
        data = _read_json(args.file)
        # Accept either an exported snapshot or a bare SecurityConfig.
        if isinstance(data, dict) and isinstance(data.get("security"), dict):
            data = data["security"]
        if not isinstance(data, dict):
            print("Error: configuration must be a JSON object", file=sys.stderr)
            return 1
        result = manager.validate_configuration(data)
    _print_result(result)
    return 0 if result.valid else 1


def _cmd_export(manager: SettingsManager, args) -> int:
    text = manager.export_configuration()
    if args.output is None:
        print(text)
    else:
        args.output.write_text(text + "\n")
        print(f"Exported configuration to {args.output}")
    return 0


def _cmd_import(manager: SettingsManager, args) -> int:
    if not args.file.exists():
        print(f"Error: file not found: {args.file}", file=sys.stderr)
        return 1
    asyncio.run(
        manager.import_configuration(
            args.file.read_text(), skip_warnings=args.skip_warnings, confirm=_prompt
        )
    )
    print("Configuration imported successfully!")
    return 0


def _cmd_presets(manager: SettingsManager, args) -> int:
    if args.presets_command in (None, "list"):
        for preset in manager.list_presets():
            print(f"{preset.name:<15} {preset.security_level.upper():<7} {preset.description}")
        return 0

    preset = manager.get_preset(args.name)
    if preset is None:
        names = ", ".join(p.name for p in manager.list_presets())
        print(f"Error: unknown preset {args.name!r} (available: {names})", file=sys.stderr)
        return 1

    if args.presets_command == "diff":
        diff = manager.internal.preset_diff(preset)
        if not diff:
            print(f"Current settings already match {preset.name}.")
        for change in diff:
            print(f"{change.setting}: {json.dumps(change.old_value)} → {json.dumps(change.new_value)}")
        return 0

    confirm = None if args.yes else _prompt
    if not asyncio.run(manager.apply_preset(preset, confirm=confirm)):
        print("Aborted.")
        return 0
    print(f"Applied preset {preset.name}")
    return 0


def _cmd_capabilities(manager: SettingsManager, args) -> int:
    print(manager.get_platform_capabilities().model_dump_json(by_alias=True, indent=2))
    return 0


def _cmd_connection(manager: SettingsManager, args) -> int:
    settings = manager.get_connection_settings()
    print(json.dumps(dataclasses.asdict(settings), indent=2))
    result = manager.validate_connection_settings()
    _print_result(result)
    return 0 if result.valid else 1


_COMMANDS = {
    "generate": _cmd_generate,
    "validate": _cmd_validate,
    "export": _cmd_export,
    "import": _cmd_import,
    "presets": _cmd_presets,
    "capabilities": _cmd_capabilities,
    "connection": _cmd_connection,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="processguard",
        description="Manage the security configuration of the sandboxed process server",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        help="Settings file (default: $PROCESSGUARD_SETTINGS_PATH, else in-memory defaults)",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("generate", help="Print the generated server SecurityConfig")

    validate_parser = subparsers.add_parser("validate", help="Validate the current or a given configuration")
    validate_parser.add_argument(
        "file",
        nargs="?",
        type=Path,
        help="JSON SecurityConfig or exported snapshot (default: current settings)",
    )

    export_parser = subparsers.add_parser("export", help="Export the configuration as JSON")
    export_parser.add_argument("-o", "--output", type=Path, help="Write to this file instead of stdout")

    import_parser = subparsers.add_parser("import", help="Import an exported configuration")
    import_parser.add_argument("file", type=Path, help="Exported JSON snapshot")
    import_parser.add_argument(
        "--skip-warnings",
        action="store_true",
        help="Do not ask about platform mismatches or validation warnings",
    )

    presets_parser = subparsers.add_parser("presets", help="List, diff or apply configuration presets")
    presets_sub = presets_parser.add_subparsers(dest="presets_command")
    presets_sub.add_parser("list", help="List the built-in presets")
    diff_parser = presets_sub.add_parser("diff", help="Show settings a preset would change")
    diff_parser.add_argument("name", help="Preset name (case-insensitive)")
    apply_parser = presets_sub.add_parser("apply", help="Apply a preset")
    apply_parser.add_argument("name", help="Preset name (case-insensitive)")
    apply_parser.add_argument("--yes", action="store_true", help="Apply without confirmation")

    subparsers.add_parser("capabilities", help="Show detected platform capabilities")
    subparsers.add_parser("connection", help="Show and check client timeout/reconnect settings")

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        options = load_options(settings_path=args.settings)
        with SettingsManager(options=options) as manager:
            code = _COMMANDS[args.command](manager, args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(code)


if __name__ == "__main__":
    main()
