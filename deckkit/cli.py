"""Command line entry point."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, Sequence

import yaml

from deckkit.kic.common import DEFAULT_CLASS_NAME, KICTarget
from deckkit.kic.writer import write_content_to_file

VERSION = "dev"
COMMIT = "unknown"

_OUTPUT_FORMATS = ["yaml", "json"]


def validate_input_flag(
    flag_name: str,
    flag_value: str,
    allowed_values: Sequence[str],
    error_message: str = "",
) -> None:
    """Raise ValueError unless ``flag_value`` is one of ``allowed_values``."""
    if flag_value in allowed_values:
        return
    if error_message:
        raise ValueError(error_message)
    raise ValueError(
        f"invalid value '{flag_value}' found for the '{flag_name}' flag. "
        f"Allowed values: [{' '.join(allowed_values)}]"
    )


def version_text() -> str:
    """The line printed by the version command."""
    return f"decK {VERSION} ({COMMIT}) "


def _load_content(source: str) -> dict[str, Any]:
    text = sys.stdin.read() if source == "-" else Path(source).read_text(encoding="utf-8")
    content = yaml.safe_load(text)
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ValueError(f"{source}: the configuration must be a mapping")
    return content


def _run_version(_args: argparse.Namespace) -> int:
    print(version_text())
    return 0


def _run_kong2kic(args: argparse.Namespace) -> int:
    try:
        output_format = args.format.lower()
        validate_input_flag("format", output_format, _OUTPUT_FORMATS)
        target = args.target.upper()
        validate_input_flag("target", target, [t.value for t in KICTarget])
        content = _load_content(args.state)
        write_content_to_file(content, args.output_file, target, output_format, args.class_name)
    except (ValueError, OSError, yaml.YAMLError) as err:
        print(f"Error: {err}", file=sys.stderr)
        return 1
    return 0


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="deck", description="Administer your Kong clusters declaratively"
    )
    commands = parser.add_subparsers(dest="command")

    version = commands.add_parser("version", help="Print the decK version")
    version.set_defaults(handler=_run_version)

    kong2kic = commands.add_parser(
        "kong2kic", help="Convert a Kong configuration into Kong Ingress Controller manifests"
    )
    kong2kic.add_argument("-s", "--state", default="-", help="input file, '-' for stdin")
    kong2kic.add_argument("-o", "--output-file", default="-", help="output file, '-' for stdout")
    kong2kic.add_argument("--format", default="yaml", help="yaml or json")
    kong2kic.add_argument("--target", default=KICTarget.V3_GATEWAY.value, help="KIC target")
    kong2kic.add_argument("--class-name", default=DEFAULT_CLASS_NAME, help="ingress class name")
    kong2kic.set_defaults(handler=_run_kong2kic)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the command line and return its exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0
    return args.handler(args)


if __name__ == "__main__":
    sys.exit(main())