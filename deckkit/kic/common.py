"""Constants and shared helpers for building Kong Ingress Controller manifests."""

from __future__ import annotations

import hashlib
import logging
from enum import Enum
from typing import Any, Iterable, MutableMapping

from slugify import slugify

logger = logging.getLogger(__name__)

KONGHQ_CLIENT_CERT = "konghq.com/client-cert"
KONGHQ_CONNECT_TIMEOUT = "konghq.com/connect-timeout"
KONGHQ_CREDENTIAL = "konghq.com/credential"
KONGHQ_HEADERS = "konghq.com/headers"
KONGHQ_HTTPS_REDIRECT_STATUS_CODE = "konghq.com/https-redirect-status-code"
KONGHQ_METHODS = "konghq.com/methods"
KONGHQ_OVERRIDE = "konghq.com/override"
KONGHQ_PATH = "konghq.com/path"
KONGHQ_PATH_HANDLING = "konghq.com/path-handling"
KONGHQ_PLUGINS = "konghq.com/plugins"
KONGHQ_PRESERVE_HOST = "konghq.com/preserve-host"
KONGHQ_PROTOCOL = "konghq.com/protocol"
KONGHQ_PROTOCOLS = "konghq.com/protocols"
KONGHQ_READ_TIMEOUT = "konghq.com/read-timeout"
KONGHQ_REGEX_PRIORITY = "konghq.com/regex-priority"
KONGHQ_REQUEST_BUFFERING = "konghq.com/request-buffering"
KONGHQ_RESPONSE_BUFFERING = "konghq.com/response-buffering"
KONGHQ_RETRIES = "konghq.com/retries"
KONGHQ_SNIS = "konghq.com/snis"
KONGHQ_STRIP_PATH = "konghq.com/strip-path"
KONGHQ_TAGS = "konghq.com/tags"
KONGHQ_UPSTREAM_POLICY = "konghq.com/upstream-policy"
KONGHQ_WRITE_TIMEOUT = "konghq.com/write-timeout"

CONFIGURATION_KONGHQ = "configuration.konghq.com"
CONFIGURATION_KONGHQ_V1 = "configuration.konghq.com/v1"
CONFIGURATION_KONGHQ_V1BETA1 = "configuration.konghq.com/v1beta1"
GATEWAY_API_VERSION_V1 = "gateway.networking.k8s.io/v1"
GATEWAY_API_VERSION_V1BETA1 = "gateway.networking.k8s.io/v1beta1"
HTTP_ROUTE_KIND = "HTTPRoute"
INGRESS_API_VERSION = "networking.k8s.io/v1"
INGRESS_CLASS = "kubernetes.io/ingress.class"
INGRESS_KIND = "Ingress"
KONG_CLUSTER_PLUGIN_KIND = "KongClusterPlugin"
KONG_CONSUMER_KIND = "KongConsumer"
KONG_CONSUMER_GROUP_KIND = "KongConsumerGroup"
KONG_CRED_TYPE = "kongCredType"
KONG_INGRESS_KIND = "KongIngress"
KONG_PLUGIN_KIND = "KongPlugin"
SECRET_KIND = "Secret"
SECRET_CA_DIGEST = "ca.digest"
SERVICE_API_VERSION_V1 = "v1"
SERVICE_KIND = "Service"
UPSTREAM_POLICY_KIND = "KongUpstreamPolicy"

DEFAULT_CLASS_NAME = "kong"

_MAX_NAME_LENGTH = 63
_TRUNCATED_LENGTH = 53
_HASH_SUFFIX_LENGTH = 10


class KICTarget(str, Enum):
    """The Kong Ingress Controller version and API flavour to generate for."""

    V2_GATEWAY = "KICV2_GATEWAY"
    V2_INGRESS = "KICV2_INGRESS"
    V3_GATEWAY = "KICV3_GATEWAY"
    V3_INGRESS = "KICV3_INGRESS"

    @property
    def is_v3(self) -> bool:
        return self in (KICTarget.V3_GATEWAY, KICTarget.V3_INGRESS)

    @property
    def uses_gateway_api(self) -> bool:
        return self in (KICTarget.V2_GATEWAY, KICTarget.V3_GATEWAY)


def present(values: Iterable[Any] | None) -> list[Any]:
    """Return the non-null members of ``values``."""
    return [value for value in values or () if value is not None]


def calculate_slug(value: str) -> str:
    """Turn ``value`` into a name valid as Kubernetes object metadata."""
    slug = slugify(value, replacements=[["&", "and"], ["@", "at"]]).replace("_", "-")
    if len(slug) > _MAX_NAME_LENGTH:
        digest = hashlib.sha256(slug.encode("utf-8")).hexdigest()
        keep = _TRUNCATED_LENGTH - _HASH_SUFFIX_LENGTH
        slug = slug[:keep] + digest[:_HASH_SUFFIX_LENGTH]
    return slug


def add_tags_to_annotations(
    tags: Iterable[str | None] | None, annotations: MutableMapping[str, str]
) -> None:
    """Record the non-null tags as a comma separated annotation, if any."""
    if tags is None:
        return
    tag_list = present(tags)
    if tag_list:
        annotations[KONGHQ_TAGS] = ",".join(tag_list)


def add_plugin_to_annotations(plugin_name: str, annotations: MutableMapping[str, str]) -> None:
    """Append ``plugin_name`` to the plugins annotation."""
    existing = annotations.get(KONGHQ_PLUGINS)
    if existing:
        annotations[KONGHQ_PLUGINS] = f"{existing},{plugin_name}"
    else:
        annotations[KONGHQ_PLUGINS] = plugin_name


def _ordering(ordering: dict[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for phase in ("before", "after"):
        value = ordering.get(phase)
        if value:
            result[phase] = value
    return result


def create_kong_plugin(
    plugin: dict[str, Any], owner_name: str, class_name: str = DEFAULT_CLASS_NAME
) -> dict[str, Any] | None:
    """Build a KongPlugin manifest for a plugin owned by ``owner_name``.

    Returns None when the plugin has no name.
    """
    plugin_name = plugin.get("name")
    if plugin_name is None:
        logger.warning("Plugin name is empty. Please provide a name for the plugin.")
        return None

    annotations: dict[str, str] = {INGRESS_CLASS: class_name}
    add_tags_to_annotations(plugin.get("tags"), annotations)

    kong_plugin: dict[str, Any] = {
        "apiVersion": CONFIGURATION_KONGHQ_V1,
        "kind": KONG_PLUGIN_KIND,
        "metadata": {
            "name": calculate_slug(f"{owner_name}-{plugin_name}"),
            "annotations": annotations,
        },
        "plugin": plugin_name,
    }

    enabled = plugin.get("enabled")
    if enabled is not None and not enabled:
        kong_plugin["disabled"] = True
    run_on = plugin.get("run_on")
    if run_on:
        kong_plugin["run_on"] = run_on
    ordering = plugin.get("ordering")
    if ordering is not None:
        kong_plugin["ordering"] = _ordering(ordering)
    protocols = plugin.get("protocols")
    if protocols is not None:
        protocol_list = present(protocols)
        if protocol_list:
            kong_plugin["protocols"] = protocol_list

    kong_plugin["config"] = plugin.get("config")
    return kong_plugin


def _reference(ref: Any, key: str) -> Any:
    if isinstance(ref, str):
        return ref
    if isinstance(ref, dict):
        return ref.get(key)
    return None


def process_top_level_entities(content: dict[str, Any]) -> None:
    """Attach top-level routes and plugins to the services and routes they name.

    The content is changed in place.
    """
    services = content.get("services") or []

    for route in content.get("routes") or []:
        service_name = _reference(route.get("service"), "name")
        if service_name is None:
            continue
        for service in services:
            if service.get("name") is not None and service["name"] == service_name:
                service.setdefault("routes", []).append(route)
                break

    for plugin in content.get("plugins") or []:
        service_id = _reference(plugin.get("service"), "id")
        route_id = _reference(plugin.get("route"), "id")
        if service_id is not None:
            for service in services:
                if service.get("name") is not None and service["name"] == service_id:
                    service.setdefault("plugins", []).append(plugin)
                    break
        elif route_id is not None:
            for service in services:
                for route in service.get("routes") or []:
                    if route.get("name") is not None and route["name"] == route_id:
                        route.setdefault("plugins", []).append(plugin)
                        break