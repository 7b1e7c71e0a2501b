"""The collection of generated manifests and its YAML or JSON rendering."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any

import yaml

YAML = "YAML"
JSON = "JSON"

_YAML_SEPARATOR = "---\n"
_SPEC_LESS_KINDS = frozenset({"KongConsumer", "KongConsumerGroup"})
_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


class _ManifestDumper(yaml.SafeDumper):
    """YAML dumper that writes multi-line strings as literal blocks."""


def _represent_str(dumper: yaml.SafeDumper, value: str) -> yaml.ScalarNode:
    if "\n" in value:
        return dumper.represent_scalar("tag:yaml.org,2002:str", value, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", value)


_ManifestDumper.add_representer(str, _represent_str)


def _normalise_format(output_format: str) -> str:
    normalised = str(output_format).upper()
    if normalised not in (YAML, JSON):
        raise ValueError(f"unknown output format: {output_format}")
    return normalised


def _to_json(obj: Any) -> str:
    text = json.dumps(obj, indent=4, sort_keys=True, ensure_ascii=False)
    for char, escape in _HTML_ESCAPES.items():
        text = text.replace(char, escape)
    return text


def serialize_object_dropping_fields(obj: dict[str, Any], output_format: str) -> str:
    """Render one manifest, leaving out fields users are not meant to supply."""
    fmt = _normalise_format(output_format)
    generic = json.loads(json.dumps(obj))
    if not isinstance(generic, dict):
        raise TypeError("a manifest must be a mapping")

    generic.pop("status", None)
    metadata = generic.get("metadata")
    if isinstance(metadata, dict):
        metadata.pop("creationTimestamp", None)
    if generic.get("kind") in _SPEC_LESS_KINDS:
        generic.pop("spec", None)

    if fmt == JSON:
        return _to_json(generic)
    return yaml.dump(
        generic,
        Dumper=_ManifestDumper,
        default_flow_style=False,
        sort_keys=True,
        allow_unicode=True,
    )


@dataclass
class KICContent:
    """Manifests generated for the Kong Ingress Controller, grouped by kind."""

    kong_ingresses: list[dict[str, Any]] = field(default_factory=list)
    kong_plugins: list[dict[str, Any]] = field(default_factory=list)
    kong_cluster_plugins: list[dict[str, Any]] = field(default_factory=list)
    ingresses: list[dict[str, Any]] = field(default_factory=list)
    services: list[dict[str, Any]] = field(default_factory=list)
    secrets: list[dict[str, Any]] = field(default_factory=list)
    kong_consumers: list[dict[str, Any]] = field(default_factory=list)
    kong_consumer_groups: list[dict[str, Any]] = field(default_factory=list)
    http_routes: list[dict[str, Any]] = field(default_factory=list)
    kong_upstream_policies: list[dict[str, Any]] = field(default_factory=list)

    def manifests(self) -> list[dict[str, Any]]:
        """All manifests in the order they are written out."""
        return [
            *self.kong_ingresses,
            *self.kong_plugins,
            *self.kong_cluster_plugins,
            *self.ingresses,
            *self.http_routes,
            *self.kong_upstream_policies,
            *self.services,
            *self.secrets,
            *self.kong_consumers,
            *self.kong_consumer_groups,
        ]

    def marshal(self, output_format: str) -> str:
        """Render every manifest as a YAML stream or concatenated JSON objects."""
        fmt = _normalise_format(output_format)
        parts = []
        for manifest in self.manifests():
            parts.append(serialize_object_dropping_fields(copy.deepcopy(manifest), fmt))
            if fmt == YAML:
                parts.append(_YAML_SEPARATOR)
        return "".join(parts)