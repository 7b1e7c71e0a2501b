"""Assembly of Kong Ingress Controller manifests from a Kong declarative configuration."""

from __future__ import annotations

from typing import Any

from deckkit.kic.certificates import populate_ca_certificates, populate_certificates
from deckkit.kic.cluster_plugins import populate_cluster_plugins
from deckkit.kic.common import DEFAULT_CLASS_NAME, KICTarget, process_top_level_entities
from deckkit.kic.consumer_groups import populate_consumer_groups
from deckkit.kic.consumers import populate_consumers
from deckkit.kic.routes import populate_http_routes, populate_ingresses
from deckkit.kic.serialize import YAML, KICContent
from deckkit.kic.services import populate_services


class ManifestBuilder:
    """Builds every manifest kind for one KIC target and ingress class."""

    def __init__(
        self,
        target: KICTarget | str = KICTarget.V3_GATEWAY,
        class_name: str = DEFAULT_CLASS_NAME,
    ) -> None:
        self.target = KICTarget(target)
        self.class_name = class_name

    def build(self, content: dict[str, Any]) -> KICContent:
        """Generate the manifests for ``content``.

        Services come first, then routes, global plugins, consumers, consumer
        groups, CA certificates and certificates.
        """
        kic_content = KICContent()
        populate_services(content, kic_content, self.target, self.class_name)
        if self.target.uses_gateway_api:
            populate_http_routes(content, kic_content, self.target, self.class_name)
        else:
            populate_ingresses(content, kic_content, self.class_name)
        populate_cluster_plugins(content, kic_content, self.class_name)
        populate_consumers(content, kic_content, self.target, self.class_name)
        populate_consumer_groups(content, kic_content, self.class_name)
        populate_ca_certificates(content, kic_content, self.class_name)
        populate_certificates(content, kic_content, self.class_name)
        return kic_content


def convert_kong_to_kic(
    content: dict[str, Any],
    target: KICTarget | str = KICTarget.V3_GATEWAY,
    class_name: str = DEFAULT_CLASS_NAME,
) -> KICContent:
    """Generate the manifests for ``content`` without rendering them."""
    return ManifestBuilder(target, class_name).build(content)


def marshal_kong_to_kic(
    content: dict[str, Any],
    target: KICTarget | str = KICTarget.V3_GATEWAY,
    output_format: str = YAML,
    class_name: str = DEFAULT_CLASS_NAME,
) -> str:
    """Render the manifests for ``content`` as YAML or JSON.

    Top-level routes and plugins are first attached, in place, to the
    services and routes they refer to.
    """
    builder = ManifestBuilder(target, class_name)
    process_top_level_entities(content)
    return builder.build(content).marshal(output_format)