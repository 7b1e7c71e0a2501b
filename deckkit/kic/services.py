"""Kong services turned into Kubernetes Service manifests."""

from __future__ import annotations

import logging
from typing import Any, Iterable, MutableMapping

from deckkit.kic.common import (
    DEFAULT_CLASS_NAME,
    KONGHQ_CLIENT_CERT,
    KONGHQ_CONNECT_TIMEOUT,
    KONGHQ_PATH,
    KONGHQ_PROTOCOL,
    KONGHQ_READ_TIMEOUT,
    KONGHQ_RETRIES,
    KONGHQ_WRITE_TIMEOUT,
    SERVICE_API_VERSION_V1,
    SERVICE_KIND,
    KICTarget,
    add_plugin_to_annotations,
    add_tags_to_annotations,
    calculate_slug,
    create_kong_plugin,
)
from deckkit.kic.serialize import KICContent
from deckkit.kic.upstreams import populate_kong_ingress_upstream, populate_upstream_policy

logger = logging.getLogger(__name__)

_PROTOCOL_TCP = "TCP"
_PROTOCOL_UDP = "UDP"
_SERVICE_TYPE_EXTERNAL_NAME = "ExternalName"
_MIN_PORT = 0
_MAX_PORT = 65535

_INT_ANNOTATIONS = (
    ("read_timeout", KONGHQ_READ_TIMEOUT),
    ("write_timeout", KONGHQ_WRITE_TIMEOUT),
    ("connect_timeout", KONGHQ_CONNECT_TIMEOUT),
    ("retries", KONGHQ_RETRIES),
)


def is_upstream_referenced(host: str, upstreams: Iterable[dict[str, Any]] | None) -> bool:
    """Tell whether some upstream is named ``host``, ignoring case."""
    wanted = host.casefold()
    return any(
        upstream.get("name") is not None and upstream["name"].casefold() == wanted
        for upstream in upstreams or ()
    )


def create_k8s_service(
    service: dict[str, Any], upstreams: Iterable[dict[str, Any]] | None
) -> dict[str, Any]:
    """Build a Kubernetes Service for a named Kong service.

    Raises ValueError when the service port is outside 0..65535.
    """
    name = service["name"]
    spec: dict[str, Any] = {}
    k8s_service: dict[str, Any] = {
        "apiVersion": SERVICE_API_VERSION_V1,
        "kind": SERVICE_KIND,
        "metadata": {"name": calculate_slug(name), "annotations": {}},
        "spec": spec,
    }

    protocol = service.get("protocol")
    port_protocol = (
        _PROTOCOL_UDP if protocol is not None and protocol.upper() == _PROTOCOL_UDP else _PROTOCOL_TCP
    )

    port = service.get("port")
    if port is not None:
        if not _MIN_PORT <= port <= _MAX_PORT:
            raise ValueError(
                f"Port {port} is not within the valid range. "
                f"Please provide a port between {_MIN_PORT} and {_MAX_PORT}."
            )
        spec["ports"] = [{"protocol": port_protocol, "port": port, "targetPort": port}]

    host = service.get("host")
    if host is None or is_upstream_referenced(host, upstreams):
        spec["selector"] = {"app": name}
    else:
        spec["type"] = _SERVICE_TYPE_EXTERNAL_NAME
        spec["externalName"] = host

    return k8s_service


def _certificate_id(certificate: Any) -> str | None:
    if isinstance(certificate, str):
        return certificate
    if isinstance(certificate, dict):
        return certificate.get("id")
    return None


def add_annotations_from_service(
    service: dict[str, Any], annotations: MutableMapping[str, str]
) -> None:
    """Record the service settings that KIC reads from annotations."""
    if service.get("protocol") is not None:
        annotations[KONGHQ_PROTOCOL] = service["protocol"]
    if service.get("path") is not None:
        annotations[KONGHQ_PATH] = service["path"]
    cert_id = _certificate_id(service.get("client_certificate"))
    if cert_id is not None:
        annotations[KONGHQ_CLIENT_CERT] = cert_id
    for field, annotation in _INT_ANNOTATIONS:
        value = service.get(field)
        if value is not None:
            annotations[annotation] = str(int(value))
    add_tags_to_annotations(service.get("tags"), annotations)


def process_plugin(
    plugin: dict[str, Any],
    owner_name: str,
    annotations: MutableMapping[str, str],
    kic_content: KICContent,
    class_name: str = DEFAULT_CLASS_NAME,
) -> None:
    """Create a KongPlugin for ``plugin`` and reference it from ``annotations``."""
    if plugin.get("name") is None:
        logger.warning("Plugin name is empty. Please provide a name for the plugin.")
        return
    kong_plugin = create_kong_plugin(plugin, owner_name, class_name)
    if kong_plugin is None:
        return
    add_plugin_to_annotations(kong_plugin["metadata"]["name"], annotations)
    kic_content.kong_plugins.append(kong_plugin)


def add_plugins_to_service(
    service: dict[str, Any],
    k8s_service: dict[str, Any],
    kic_content: KICContent,
    class_name: str = DEFAULT_CLASS_NAME,
) -> None:
    """Create KongPlugins for every plugin of a service."""
    owner_name = service.get("name")
    if owner_name is None:
        logger.warning("Service name is empty. Please provide a name for the service.")
        return
    metadata = k8s_service.setdefault("metadata", {})
    if metadata.get("annotations") is None:
        metadata["annotations"] = {}
    for plugin in service.get("plugins") or []:
        process_plugin(plugin, owner_name, metadata["annotations"], kic_content, class_name)


def populate_services(
    content: dict[str, Any],
    kic_content: KICContent,
    target: KICTarget | str = KICTarget.V3_GATEWAY,
    class_name: str = DEFAULT_CLASS_NAME,
) -> None:
    """Add a Kubernetes Service, upstream manifest and plugins for each named service."""
    kic_target = KICTarget(target)
    upstreams = content.get("upstreams")
    for service in content.get("services") or []:
        if service.get("name") is None:
            logger.warning("Service name is empty. Please provide a name for the service.")
            continue

        k8s_service = create_k8s_service(service, upstreams)
        add_annotations_from_service(service, k8s_service["metadata"]["annotations"])

        if kic_target.is_v3:
            populate_upstream_policy(content, service, k8s_service, kic_content)
        else:
            populate_kong_ingress_upstream(content, service, k8s_service, kic_content, class_name)

        add_plugins_to_service(service, k8s_service, kic_content, class_name)

        if not k8s_service["metadata"].get("annotations"):
            k8s_service["metadata"].pop("annotations", None)
        kic_content.services.append(k8s_service)