"""Upstream settings turned into KongUpstreamPolicy or KongIngress manifests."""

from __future__ import annotations

import logging
from typing import Any, Iterable

from deckkit.kic.common import (
    CONFIGURATION_KONGHQ_V1,
    CONFIGURATION_KONGHQ_V1BETA1,
    DEFAULT_CLASS_NAME,
    INGRESS_CLASS,
    KONG_INGRESS_KIND,
    KONGHQ_OVERRIDE,
    KONGHQ_UPSTREAM_POLICY,
    UPSTREAM_POLICY_KIND,
    add_tags_to_annotations,
    calculate_slug,
)
from deckkit.kic.serialize import KICContent

logger = logging.getLogger(__name__)

_CONSISTENT_HASHING = "consistent-hashing"

# Upstream fields copied as they are into a KongIngress upstream section.
_KONG_INGRESS_UPSTREAM_FIELDS = (
    "host_header",
    "algorithm",
    "slots",
    "healthchecks",
    "hash_on",
    "hash_fallback",
    "hash_on_header",
    "hash_fallback_header",
    "hash_on_cookie",
    "hash_on_cookie_path",
    "hash_on_query_arg",
    "hash_fallback_query_arg",
    "hash_on_uri_capture",
    "hash_fallback_uri_capture",
)


def _compact(mapping: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None or an empty list."""
    return {
        key: value
        for key, value in mapping.items()
        if value is not None and not (isinstance(value, list) and not value)
    }


def find_matching_upstream(
    service_host: str | None, upstreams: Iterable[dict[str, Any]] | None
) -> dict[str, Any] | None:
    """Return the upstream whose name equals ``service_host``, ignoring case."""
    if service_host is None:
        return None
    wanted = service_host.casefold()
    for upstream in upstreams or ():
        name = upstream.get("name")
        if name is not None and name.casefold() == wanted:
            return upstream
    return None


def _http_statuses(statuses: list[int] | None) -> list[int] | None:
    if statuses is None:
        return None
    return [int(status) for status in statuses]


def _healthy(healthy: dict[str, Any] | None) -> dict[str, Any] | None:
    if healthy is None:
        return None
    return _compact(
        {
            "interval": healthy.get("interval"),
            "successes": healthy.get("successes"),
            "httpStatuses": _http_statuses(healthy.get("http_statuses")),
        }
    )


def _unhealthy(unhealthy: dict[str, Any] | None) -> dict[str, Any] | None:
    if unhealthy is None:
        return None
    return _compact(
        {
            "httpFailures": unhealthy.get("http_failures"),
            "tcpFailures": unhealthy.get("tcp_failures"),
            "timeouts": unhealthy.get("timeouts"),
            "interval": unhealthy.get("interval"),
            "httpStatuses": _http_statuses(unhealthy.get("http_statuses")),
        }
    )


def _active(active: dict[str, Any] | None) -> dict[str, Any] | None:
    if active is None:
        return None
    return _compact(
        {
            "type": active.get("type"),
            "concurrency": active.get("concurrency"),
            "httpPath": active.get("http_path"),
            "httpsSni": active.get("https_sni"),
            "httpsVerifyCertificate": active.get("https_verify_certificate"),
            "timeout": active.get("timeout"),
            "headers": active.get("headers"),
            "healthy": _healthy(active.get("healthy")),
            "unhealthy": _unhealthy(active.get("unhealthy")),
        }
    )


def _passive(passive: dict[str, Any] | None) -> dict[str, Any] | None:
    if passive is None:
        return None
    return _compact(
        {
            "type": passive.get("type"),
            "healthy": _healthy(passive.get("healthy")),
            "unhealthy": _unhealthy(passive.get("unhealthy")),
        }
    )


def populate_upstream_policy_spec(upstream: dict[str, Any], policy: dict[str, Any]) -> None:
    """Fill the spec of a KongUpstreamPolicy from an upstream."""
    spec = policy.setdefault("spec", {})
    algorithm = upstream.get("algorithm")
    if algorithm is not None:
        spec["algorithm"] = algorithm
    if upstream.get("slots") is not None:
        spec["slots"] = upstream["slots"]

    if algorithm == _CONSISTENT_HASHING:
        if upstream.get("hash_on") is not None:
            spec["hashOn"] = _compact(
                {
                    "input": upstream.get("hash_on"),
                    "header": upstream.get("hash_on_header"),
                    "cookie": upstream.get("hash_on_cookie"),
                    "cookiePath": upstream.get("hash_on_cookie_path"),
                    "queryArg": upstream.get("hash_on_query_arg"),
                    "uriCapture": upstream.get("hash_on_uri_capture"),
                }
            )
        if upstream.get("hash_fallback") is not None:
            spec["hashOnFallback"] = _compact(
                {
                    "input": upstream.get("hash_fallback"),
                    "header": upstream.get("hash_fallback_header"),
                    "queryArg": upstream.get("hash_fallback_query_arg"),
                    "uriCapture": upstream.get("hash_fallback_uri_capture"),
                }
            )

    healthchecks = upstream.get("healthchecks")
    if healthchecks is not None:
        threshold = healthchecks.get("threshold")
        spec["healthchecks"] = _compact(
            {
                "threshold": int(threshold) if threshold is not None else 0,
                "active": _active(healthchecks.get("active")),
                "passive": _passive(healthchecks.get("passive")),
            }
        )


def _link_to_service(k8s_service: dict[str, Any], annotation: str, name: str) -> None:
    metadata = k8s_service.setdefault("metadata", {})
    if metadata.get("annotations") is None:
        metadata["annotations"] = {}
    metadata["annotations"][annotation] = name


def populate_upstream_policy(
    content: dict[str, Any],
    service: dict[str, Any],
    k8s_service: dict[str, Any],
    kic_content: KICContent,
) -> None:
    """Add a KongUpstreamPolicy for the upstream a service points at."""
    service_name = service.get("name")
    if service_name is None:
        logger.warning("Service name is empty. Please provide the necessary information.")
        return

    upstream = find_matching_upstream(service.get("host"), content.get("upstreams"))
    if upstream is None:
        return

    name = calculate_slug(f"{service_name}-upstream")
    annotations: dict[str, str] = {}
    policy: dict[str, Any] = {
        "apiVersion": CONFIGURATION_KONGHQ_V1BETA1,
        "kind": UPSTREAM_POLICY_KIND,
        "metadata": {"name": name, "annotations": annotations},
        "spec": {},
    }
    _link_to_service(k8s_service, KONGHQ_UPSTREAM_POLICY, name)
    populate_upstream_policy_spec(upstream, policy)
    add_tags_to_annotations(upstream.get("tags"), annotations)
    if not annotations:
        del policy["metadata"]["annotations"]
    kic_content.kong_upstream_policies.append(policy)


def populate_kong_ingress_upstream(
    content: dict[str, Any],
    service: dict[str, Any],
    k8s_service: dict[str, Any],
    kic_content: KICContent,
    class_name: str = DEFAULT_CLASS_NAME,
) -> None:
    """Add a KongIngress carrying the upstream a service points at."""
    service_name = service.get("name")
    if service_name is None:
        logger.warning("Service name is empty. Please provide the necessary information.")
        return

    upstream = find_matching_upstream(service.get("host"), content.get("upstreams"))
    if upstream is None:
        return

    name = calculate_slug(f"{service_name}-upstream")
    annotations: dict[str, str] = {INGRESS_CLASS: class_name}
    kong_ingress: dict[str, Any] = {
        "apiVersion": CONFIGURATION_KONGHQ_V1,
        "kind": KONG_INGRESS_KIND,
        "metadata": {"name": name, "annotations": annotations},
        "upstream": _compact(
            {field: upstream.get(field) for field in _KONG_INGRESS_UPSTREAM_FIELDS}
        ),
    }
    _link_to_service(k8s_service, KONGHQ_OVERRIDE, name)
    add_tags_to_annotations(upstream.get("tags"), annotations)
    kic_content.kong_ingresses.append(kong_ingress)