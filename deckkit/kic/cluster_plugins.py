"""Global Kong plugins turned into KongClusterPlugin manifests."""

from __future__ import annotations

import logging
from typing import Any

from deckkit.kic.common import (
    CONFIGURATION_KONGHQ_V1,
    DEFAULT_CLASS_NAME,
    INGRESS_CLASS,
    KONG_CLUSTER_PLUGIN_KIND,
    KONGHQ_TAGS,
    calculate_slug,
    present,
)
from deckkit.kic.serialize import KICContent

logger = logging.getLogger(__name__)


def _ordering(ordering: dict[str, Any]) -> dict[str, Any]:
    return {phase: ordering[phase] for phase in ("before", "after") if ordering.get(phase)}


def populate_cluster_plugins(
    content: dict[str, Any],
    kic_content: KICContent,
    class_name: str = DEFAULT_CLASS_NAME,
) -> None:
    """Add a KongClusterPlugin for each global plugin.

    Plugins bound to a consumer group, a service or a route are not global and are skipped.
    """
    for plugin in content.get("plugins") or []:
        if plugin.get("consumer_group") is not None:
            continue
        if plugin.get("service") is not None or plugin.get("route") is not None:
            continue
        plugin_name = plugin.get("name")
        if plugin_name is None:
            logger.warning(
                "Global Plugin name is empty. This is not recommended. Please, provide a name "
                "for the plugin before generating Kong Ingress Controller manifests."
            )
            continue

        annotations: dict[str, str] = {INGRESS_CLASS: class_name}
        cluster_plugin: dict[str, Any] = {
            "apiVersion": CONFIGURATION_KONGHQ_V1,
            "kind": KONG_CLUSTER_PLUGIN_KIND,
            "metadata": {"name": calculate_slug(plugin_name), "annotations": annotations},
            "plugin": plugin_name,
        }

        enabled = plugin.get("enabled")
        if enabled is not None and not enabled:
            cluster_plugin["disabled"] = True
        if plugin.get("run_on"):
            cluster_plugin["run_on"] = plugin["run_on"]
        if plugin.get("ordering") is not None:
            cluster_plugin["ordering"] = _ordering(plugin["ordering"])
        protocols = plugin.get("protocols")
        if protocols:
            cluster_plugin["protocols"] = ["" if p is None else p for p in protocols]

        if plugin.get("tags") is not None:
            annotations[KONGHQ_TAGS] = ",".join(present(plugin["tags"]))

        cluster_plugin["config"] = plugin.get("config")
        kic_content.kong_cluster_plugins.append(cluster_plugin)