"""Kong consumer groups turned into KongConsumerGroup manifests."""

from __future__ import annotations

import logging
from typing import Any

from deckkit.kic.common import (
    CONFIGURATION_KONGHQ_V1,
    CONFIGURATION_KONGHQ_V1BETA1,
    DEFAULT_CLASS_NAME,
    INGRESS_CLASS,
    KONG_CONSUMER_GROUP_KIND,
    KONG_PLUGIN_KIND,
    add_plugin_to_annotations,
    add_tags_to_annotations,
    calculate_slug,
)
from deckkit.kic.serialize import KICContent

logger = logging.getLogger(__name__)


def create_consumer_group_plugin(
    plugin: dict[str, Any], owner_name: str, class_name: str = DEFAULT_CLASS_NAME
) -> dict[str, Any] | None:
    """Build the KongPlugin of a consumer group plugin; None when it has no name."""
    plugin_name = plugin.get("name")
    if plugin_name is None:
        logger.warning("Plugin name is empty. Please provide a name for the plugin.")
        return None
    return {
        "apiVersion": CONFIGURATION_KONGHQ_V1,
        "kind": KONG_PLUGIN_KIND,
        "metadata": {
            "name": calculate_slug(f"{owner_name}-{plugin_name}"),
            "annotations": {INGRESS_CLASS: class_name},
        },
        "plugin": plugin_name,
        "config": plugin.get("config"),
    }


def populate_consumer_groups(
    content: dict[str, Any],
    kic_content: KICContent,
    class_name: str = DEFAULT_CLASS_NAME,
) -> None:
    """Add a KongConsumerGroup for each named group and link its members and plugins.

    Consumers already in ``kic_content`` whose username is a member get the group added.
    """
    for group in content.get("consumer_groups") or []:
        group_name = group.get("name")
        if group_name is None:
            logger.warning(
                "Consumer group name is empty. Please provide a name for the consumer group."
            )
            continue

        annotations: dict[str, str] = {INGRESS_CLASS: class_name}
        kong_group: dict[str, Any] = {
            "apiVersion": CONFIGURATION_KONGHQ_V1BETA1,
            "kind": KONG_CONSUMER_GROUP_KIND,
            "metadata": {"name": calculate_slug(group_name), "annotations": annotations},
        }
        add_tags_to_annotations(group.get("tags"), annotations)

        for member in group.get("consumers") or []:
            username = member.get("username")
            if username is None:
                logger.warning(
                    "Consumer username is empty. Please provide a username for the consumer."
                )
                continue
            for kong_consumer in kic_content.kong_consumers:
                if kong_consumer.get("username") == username:
                    kong_consumer.setdefault("consumerGroups", []).append(group_name)

        for plugin in group.get("plugins") or []:
            kong_plugin = create_consumer_group_plugin(plugin, group_name, class_name)
            if kong_plugin is None:
                continue
            kic_content.kong_plugins.append(kong_plugin)
            add_plugin_to_annotations(kong_plugin["metadata"]["name"], annotations)

        kic_content.kong_consumer_groups.append(kong_group)