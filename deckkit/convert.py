"""Conversion of declarative configurations between Kong and Konnect formats."""

from __future__ import annotations

import copy
import json
import re
import sys
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Sequence

import yaml

from deckkit.plugin_updates import generate_auto_fields, update_plugins

IMPLEMENTATION_TYPE_KONG_GATEWAY = "kong-gateway"
_MAX_SAMPLE_ROUTES = 10
_PATH_REGEX_PATTERN = re.compile(r"[^a-zA-Z0-9._~/%-]")

_FINAL_WARNING = (
    "\nThese automatic changes may not be correct or exhaustive enough, please\n"
    "perform a manual audit of the config file.\n\n"
    "For related information, please visit:\n"
    "https://docs.konghq.com/deck/latest/3.0-upgrade\n\n"
)


class Format(str, Enum):
    """Configuration formats a conversion reads or writes."""

    DISTRIBUTED = "distributed"
    KONG_GATEWAY = "kong-gateway"
    KONNECT = "konnect"
    KONG_GATEWAY_2X = "kong-gateway-2.x"
    KONG_GATEWAY_3X = "kong-gateway-3.x"
    KONG_GATEWAY_28X = "2.8"
    KONG_GATEWAY_34X = "3.4"

    def __str__(self) -> str:
        return self.value


ALL_FORMATS = [Format.KONG_GATEWAY, Format.KONNECT]


def _notice(message: str) -> None:
    sys.stdout.write(message)


def parse_format(key: str) -> Format:
    """Parse a format name, ignoring case; raise ValueError when unknown."""
    try:
        return Format(key.lower())
    except ValueError:
        raise ValueError(f"invalid format: '{key}'") from None


def is_path_regex_like(path: str) -> bool:
    """Tell whether a route path holds characters only a regular expression would."""
    return _PATH_REGEX_PATTERN.search(path) is not None


def migrate_route_paths(route: dict[str, Any]) -> bool:
    """Prefix regex-like paths of a route with ``~``; return whether any changed."""
    paths = route.get("paths")
    if not paths:
        return False
    changed = False
    for index, path in enumerate(paths):
        if path is None:
            continue
        if not path.startswith("~/") and is_path_regex_like(path):
            paths[index] = "~" + path
            changed = True
    return changed


def remove_service_name(service: dict[str, Any]) -> dict[str, Any]:
    """Copy a service, dropping its name and giving it a fresh id."""
    service_copy = copy.deepcopy(service)
    service_copy.pop("name", None)
    service_copy["id"] = str(uuid.uuid4())
    return service_copy


def service_to_service_package(service: dict[str, Any]) -> dict[str, Any]:
    """Wrap a Kong service in a Konnect service package; raise ValueError if unnamed."""
    name = service.get("name")
    if name is None:
        raise ValueError(
            f"kong service with id '{service.get('id')}' doesn't have a name,"
            f"all services must be named to convert them from "
            f"{Format.KONG_GATEWAY} to {Format.KONNECT} format"
        )
    return {
        "name": name,
        "description": f"placeholder description for {name} service package",
        "versions": [
            {
                "version": "v1",
                "implementation": {
                    "type": IMPLEMENTATION_TYPE_KONG_GATEWAY,
                    "kong": {"service": remove_service_name(service)},
                },
            }
        ],
    }


def convert_gateway_to_konnect(content: dict[str, Any] | None) -> dict[str, Any]:
    """Turn every Kong service into a service package; other entities are kept."""
    if content is None:
        raise ValueError("input content is nil")
    output = copy.deepcopy(content)
    packages = output.setdefault("service_packages", [])
    for service in output.get("services") or []:
        packages.append(service_to_service_package(service))
    output.pop("services", None)
    return output


def convert_2x_to_3x(
    content: dict[str, Any] | None, filename: str, print_final_warning: bool = True
) -> dict[str, Any]:
    """Migrate a Kong 2.x configuration to the 3.x format."""
    if content is None:
        raise ValueError("input content is nil")
    output = copy.deepcopy(content)

    changed_routes: list[str] = []
    for service in output.get("services") or []:
        for route in service.get("routes") or []:
            if migrate_route_paths(route):
                identifier = route.get("id")
                changed_routes.append(identifier if identifier is not None else route.get("name"))

    if changed_routes:
        sample = "\n".join(str(name) for name in changed_routes[:_MAX_SAMPLE_ROUTES])
        _notice(
            f"From the '{filename}' config file,\n"
            f"{len(changed_routes)} unsupported routes' paths format with Kong version 3.0\n"
            "or above were detected. Some of these routes are (not an exhaustive list):\n\n"
            f"{sample}\n\n"
            "Kong gateway versions 3.0 and above require that regular expressions\n"
            "start with a '~' character to distinguish from simple prefix match.\n"
            "In order to make these paths compatible with 3.x, a '~' prefix has been added.\n\n"
        )

    generate_auto_fields(output)

    _notice(
        f"From the '{filename}' config file,\n"
        f"the _format_version field has been migrated from "
        f"'{output.get('_format_version', '')}' to '3.0'.\n\n"
    )
    output["_format_version"] = "3.0"

    if print_final_warning:
        _notice(_FINAL_WARNING)
    return output


def convert_28x_to_34x(content: dict[str, Any] | None, filename: str) -> dict[str, Any]:
    """Migrate a Kong 2.8 configuration to 3.4, fixing legacy plugin fields."""
    output = copy.deepcopy(convert_2x_to_3x(content, filename, False))
    update_plugins(output)
    _notice(_FINAL_WARNING)
    return output


def _read_one(filename: str) -> dict[str, Any]:
    text = sys.stdin.read() if filename == "-" else Path(filename).read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{filename}: the configuration must be a mapping")
    return data


def load_content(filenames: Sequence[str]) -> dict[str, Any]:
    """Read and merge YAML or JSON configuration files; lists are concatenated."""
    merged: dict[str, Any] = {}
    for filename in filenames:
        for key, value in _read_one(filename).items():
            if key not in merged:
                merged[key] = copy.deepcopy(value)
            elif isinstance(merged[key], list) and isinstance(value, list):
                merged[key].extend(copy.deepcopy(value))
            elif merged[key] != value:
                raise ValueError(f"{filename}: conflicting values for '{key}'")
    return merged


def _write(content: dict[str, Any], filename: str, output_format: str) -> None:
    fmt = output_format.lower()
    if fmt == "json":
        text = json.dumps(content, indent=2) + "\n"
    elif fmt == "yaml":
        text = yaml.safe_dump(content, sort_keys=False)
    else:
        raise ValueError(f"unknown file format: {output_format}")
    if filename == "-":
        sys.stdout.write(text)
    else:
        Path(filename).write_text(text, encoding="utf-8")


def convert(
    input_filenames: Sequence[str],
    output_filename: str,
    output_format: str,
    from_format: Format | str,
    to_format: Format | str,
) -> None:
    """Read configuration files, convert between formats and write the result."""
    source = parse_format(str(from_format))
    target = parse_format(str(to_format))
    content = load_content(input_filenames)

    if source == Format.KONG_GATEWAY and target == Format.KONNECT:
        if len(input_filenames) > 1:
            raise ValueError(
                "only one input file can be provided when converting from Kong to Konnect format"
            )
        output = convert_gateway_to_konnect(content)
    elif source == Format.KONG_GATEWAY_2X and target == Format.KONG_GATEWAY_3X:
        if len(input_filenames) > 1:
            raise ValueError(
                "only one input file can be provided when converting "
                "from Kong 2.x to Kong 3.x format"
            )
        output = convert_2x_to_3x(content, input_filenames[0], True)
    elif source == Format.KONG_GATEWAY_28X and target == Format.KONG_GATEWAY_34X:
        if len(input_filenames) > 1:
            raise ValueError(
                "only one input file can be provided when converting "
                "from Kong 2.x to Kong 3.x format"
            )
        output = convert_28x_to_34x(content, input_filenames[0])
    else:
        raise ValueError(f"cannot convert from '{source}' to '{target}' format")

    _write(output, output_filename, output_format)