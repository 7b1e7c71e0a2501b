"""Kong routes turned into Ingress or Gateway API HTTPRoute manifests."""

from __future__ import annotations

import copy
import logging
from typing import Any, MutableMapping

from deckkit.kic.common import (
    CONFIGURATION_KONGHQ,
    DEFAULT_CLASS_NAME,
    GATEWAY_API_VERSION_V1,
    GATEWAY_API_VERSION_V1BETA1,
    HTTP_ROUTE_KIND,
    INGRESS_API_VERSION,
    INGRESS_KIND,
    KONG_PLUGIN_KIND,
    KONGHQ_HEADERS,
    KONGHQ_HTTPS_REDIRECT_STATUS_CODE,
    KONGHQ_METHODS,
    KONGHQ_PATH_HANDLING,
    KONGHQ_PRESERVE_HOST,
    KONGHQ_PROTOCOLS,
    KONGHQ_REGEX_PRIORITY,
    KONGHQ_REQUEST_BUFFERING,
    KONGHQ_RESPONSE_BUFFERING,
    KONGHQ_SNIS,
    KONGHQ_STRIP_PATH,
    KONGHQ_TAGS,
    KICTarget,
    calculate_slug,
    create_kong_plugin,
    present,
)
from deckkit.kic.serialize import KICContent
from deckkit.kic.services import process_plugin

logger = logging.getLogger(__name__)

PATH_TYPE_IMPLEMENTATION_SPECIFIC = "ImplementationSpecific"
HEADER_MATCH_EXACT = "Exact"
HEADER_MATCH_REGEX = "RegularExpression"
PATH_MATCH_REGEX = "RegularExpression"
PATH_MATCH_PREFIX = "PathPrefix"
FILTER_EXTENSION_REF = "ExtensionRef"

_REGEX_HEADER_PREFIX = "~*"
_REGEX_PATH_PREFIX = "~"
_MIN_PORT = 0
_MAX_PORT = 65535


def _bool_text(value: Any) -> str:
    return "true" if value else "false"


def _set_bool(
    route: dict[str, Any], key: str, annotations: MutableMapping[str, str], annotation: str
) -> None:
    value = route.get(key)
    if value is not None:
        annotations[annotation] = _bool_text(value)


def _set_int(
    route: dict[str, Any], key: str, annotations: MutableMapping[str, str], annotation: str
) -> None:
    value = route.get(key)
    if value is not None:
        annotations[annotation] = str(int(value))


def _header_values(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def add_annotations_from_route(
    route: dict[str, Any], annotations: MutableMapping[str, str]
) -> None:
    """Record the route settings that an Ingress carries as annotations."""
    if route.get("protocols") is not None:
        annotations[KONGHQ_PROTOCOLS] = ",".join(present(route["protocols"]))
    _set_bool(route, "strip_path", annotations, KONGHQ_STRIP_PATH)
    _set_bool(route, "preserve_host", annotations, KONGHQ_PRESERVE_HOST)
    _set_int(route, "regex_priority", annotations, KONGHQ_REGEX_PRIORITY)
    _set_int(route, "https_redirect_status_code", annotations, KONGHQ_HTTPS_REDIRECT_STATUS_CODE)
    headers = route.get("headers")
    if headers is not None:
        for key, value in headers.items():
            annotations[f"{KONGHQ_HEADERS}.{key}"] = ",".join(_header_values(value))
    if route.get("path_handling") is not None:
        annotations[KONGHQ_PATH_HANDLING] = route["path_handling"]
    if route.get("snis") is not None:
        annotations[KONGHQ_SNIS] = ",".join(present(route["snis"]))
    _set_bool(route, "request_buffering", annotations, KONGHQ_REQUEST_BUFFERING)
    _set_bool(route, "response_buffering", annotations, KONGHQ_RESPONSE_BUFFERING)
    if route.get("methods") is not None:
        annotations[KONGHQ_METHODS] = ",".join(present(route["methods"]))
    if route.get("tags") is not None:
        annotations[KONGHQ_TAGS] = ",".join(present(route["tags"]))


def create_ingress_paths(
    route: dict[str, Any],
    service_name: str,
    service_port: int | None,
    path_type: str = PATH_TYPE_IMPLEMENTATION_SPECIFIC,
) -> list[dict[str, Any]]:
    """Build the Ingress paths of a route, all pointing at one service.

    Raises ValueError when the port is outside 0..65535.
    """
    if service_port is not None and not _MIN_PORT <= service_port <= _MAX_PORT:
        raise ValueError(
            f"Port {service_port} is not within the valid range. "
            f"Please provide a port between {_MIN_PORT} and {_MAX_PORT}."
        )
    port = {"number": int(service_port)} if service_port else {}

    paths = []
    for path in present(route.get("paths")):
        if path.startswith(_REGEX_PATH_PREFIX):
            path = "/" + path
        entry: dict[str, Any] = {}
        if path:
            entry["path"] = path
        entry["pathType"] = path_type
        entry["backend"] = {"service": {"name": service_name, "port": dict(port)}}
        paths.append(entry)
    return paths


def _finish_annotations(metadata: dict[str, Any]) -> None:
    if not metadata.get("annotations"):
        metadata.pop("annotations", None)


def populate_ingresses(
    content: dict[str, Any],
    kic_content: KICContent,
    class_name: str = DEFAULT_CLASS_NAME,
) -> None:
    """Add an Ingress, and its KongPlugins, for every named route of every named service."""
    for service in content.get("services") or []:
        service_name = service.get("name")
        if service_name is None:
            logger.warning("Service name is empty. Please provide a name for the service.")
            continue
        for route in service.get("routes") or []:
            route_name = route.get("name")
            if route_name is None:
                logger.warning("Route name is empty. Please provide a name for the route.")
                continue

            annotations: dict[str, str] = {}
            add_annotations_from_route(route, annotations)

            port = service.get("port")
            hosts = present(route.get("hosts"))
            if hosts:
                rules = [
                    {
                        "host": host,
                        "http": {"paths": create_ingress_paths(route, service_name, port)},
                    }
                    for host in hosts
                ]
            else:
                rules = [{"http": {"paths": create_ingress_paths(route, service_name, port)}}]

            owner_name = f"{service_name}-{route_name}"
            for plugin in route.get("plugins") or []:
                if plugin.get("name") is None:
                    logger.warning("Plugin name is empty. Please provide a name for the plugin.")
                    continue
                process_plugin(plugin, owner_name, annotations, kic_content, class_name)

            ingress: dict[str, Any] = {
                "apiVersion": INGRESS_API_VERSION,
                "kind": INGRESS_KIND,
                "metadata": {"name": calculate_slug(owner_name), "annotations": annotations},
                "spec": {"ingressClassName": class_name, "rules": rules},
            }
            _finish_annotations(ingress["metadata"])
            kic_content.ingresses.append(ingress)


def header_sort_key(header: dict[str, Any]) -> tuple[str, bool, str, str]:
    """Order header matches by name, then type (typed first), then value."""
    header_type = header.get("type")
    return (
        header.get("name", ""),
        header_type is None,
        header_type or "",
        header.get("value", ""),
    )


def _header_matches(route: dict[str, Any]) -> list[dict[str, Any]]:
    headers = route.get("headers")
    if headers is None:
        return []
    matches = []
    for key, raw_values in headers.items():
        values = _header_values(raw_values)
        if len(values) == 1 and values[0].startswith(_REGEX_HEADER_PREFIX):
            matches.append(
                {
                    "name": key,
                    "value": values[0][len(_REGEX_HEADER_PREFIX):],
                    "type": HEADER_MATCH_REGEX,
                }
            )
        else:
            matches.append({"name": key, "value": ",".join(values), "type": HEADER_MATCH_EXACT})
    matches.sort(key=header_sort_key)
    return matches


def _rule(
    backend_ref: dict[str, Any],
    headers: list[dict[str, Any]],
    path_match: dict[str, Any] | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    match: dict[str, Any] = {}
    if path_match is not None:
        match["path"] = dict(path_match)
    if method is not None:
        match["method"] = method
    if headers:
        match["headers"] = copy.deepcopy(headers)
    return {"matches": [match], "backendRefs": [dict(backend_ref)]}


def add_backend_refs(
    http_route: dict[str, Any], service: dict[str, Any], route: dict[str, Any]
) -> None:
    """Add one rule per path and method combination, each pointing at the service."""
    backend_ref: dict[str, Any] = {"name": service["name"]}
    if service.get("port") is not None:
        backend_ref["port"] = int(service["port"])

    headers = _header_matches(route)
    rules = http_route.setdefault("spec", {}).setdefault("rules", [])
    methods = route.get("methods")
    paths = route.get("paths")

    if paths is not None:
        for path in present(paths):
            if path.startswith(_REGEX_PATH_PREFIX):
                path_match = {"type": PATH_MATCH_REGEX, "value": path[len(_REGEX_PATH_PREFIX):]}
            else:
                path_match = {"type": PATH_MATCH_PREFIX, "value": path}
            if methods is None:
                rules.append(_rule(backend_ref, headers, path_match))
            for method in present(methods):
                rules.append(_rule(backend_ref, headers, path_match, method))
    else:
        for method in present(methods):
            rules.append(_rule(backend_ref, headers, method=method))


def _add_http_route_annotations(
    route: dict[str, Any], annotations: MutableMapping[str, str]
) -> None:
    _set_bool(route, "preserve_host", annotations, KONGHQ_PRESERVE_HOST)
    _set_bool(route, "strip_path", annotations, KONGHQ_STRIP_PATH)
    _set_int(route, "https_redirect_status_code", annotations, KONGHQ_HTTPS_REDIRECT_STATUS_CODE)
    _set_int(route, "regex_priority", annotations, KONGHQ_REGEX_PRIORITY)
    if route.get("path_handling") is not None:
        annotations[KONGHQ_PATH_HANDLING] = route["path_handling"]
    if route.get("tags") is not None:
        annotations[KONGHQ_TAGS] = ",".join(present(route["tags"]))
    if route.get("snis") is not None:
        annotations[KONGHQ_SNIS] = ",".join(present(route["snis"]))
    _set_bool(route, "request_buffering", annotations, KONGHQ_REQUEST_BUFFERING)
    _set_bool(route, "response_buffering", annotations, KONGHQ_RESPONSE_BUFFERING)


def create_http_route(
    service: dict[str, Any],
    route: dict[str, Any],
    target: KICTarget | str = KICTarget.V3_GATEWAY,
    class_name: str = DEFAULT_CLASS_NAME,
) -> dict[str, Any]:
    """Build a Gateway API HTTPRoute for a route of a service.

    Raises ValueError when the service or the route has no name.
    """
    service_name = service.get("name")
    route_name = route.get("name")
    if service_name is None or route_name is None:
        raise ValueError(
            "service name or route name is empty. Please provide a name for the service "
            "and the route before generating HTTPRoute manifests"
        )

    api_version = (
        GATEWAY_API_VERSION_V1
        if KICTarget(target) == KICTarget.V3_GATEWAY
        else GATEWAY_API_VERSION_V1BETA1
    )
    annotations: dict[str, str] = {}
    _add_http_route_annotations(route, annotations)

    spec: dict[str, Any] = {}
    hosts = route.get("hosts")
    if hosts:
        spec["hostnames"] = present(hosts)
    spec["parentRefs"] = [{"name": class_name}]

    http_route: dict[str, Any] = {
        "apiVersion": api_version,
        "kind": HTTP_ROUTE_KIND,
        "metadata": {
            "name": calculate_slug(f"{service_name}-{route_name}"),
            "annotations": annotations,
        },
        "spec": spec,
    }
    add_backend_refs(http_route, service, route)
    if not spec.get("rules"):
        spec.pop("rules", None)
    return http_route


def _add_gateway_plugin(
    plugin: dict[str, Any],
    service: dict[str, Any],
    route: dict[str, Any],
    http_route: dict[str, Any],
    kic_content: KICContent,
    class_name: str,
) -> None:
    if plugin.get("name") is None or route.get("name") is None or service.get("name") is None:
        logger.warning(
            "Service name, route name or plugin name is empty. This is not recommended. "
            "Please provide a name for the service, route and the plugin before generating "
            "Kong Ingress Controller manifests."
        )
        return

    kong_plugin = create_kong_plugin(plugin, f"{service['name']}-{route['name']}", class_name)
    if kong_plugin is None:
        return
    tags = plugin.get("tags")
    if tags is not None:
        kong_plugin["metadata"]["annotations"][KONGHQ_TAGS] = ",".join(present(tags))

    for rule in http_route.get("spec", {}).get("rules") or []:
        rule.setdefault("filters", []).append(
            {
                "type": FILTER_EXTENSION_REF,
                "extensionRef": {
                    "group": CONFIGURATION_KONGHQ,
                    "kind": KONG_PLUGIN_KIND,
                    "name": kong_plugin["metadata"]["name"],
                },
            }
        )
    kic_content.kong_plugins.append(kong_plugin)


def populate_http_routes(
    content: dict[str, Any],
    kic_content: KICContent,
    target: KICTarget | str = KICTarget.V3_GATEWAY,
    class_name: str = DEFAULT_CLASS_NAME,
) -> None:
    """Add an HTTPRoute, and its KongPlugins, for every route of every service."""
    for service in content.get("services") or []:
        for route in service.get("routes") or []:
            try:
                http_route = create_http_route(service, route, target, class_name)
            except ValueError as err:
                logger.warning("%s", err)
                continue
            for plugin in route.get("plugins") or []:
                _add_gateway_plugin(plugin, service, route, http_route, kic_content, class_name)
            _finish_annotations(http_route["metadata"])
            kic_content.http_routes.append(http_route)