"""Kong consumers and their credentials turned into KongConsumer and Secret manifests."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from deckkit.kic.common import (
    CONFIGURATION_KONGHQ_V1,
    DEFAULT_CLASS_NAME,
    INGRESS_CLASS,
    KONG_CONSUMER_KIND,
    KONG_CRED_TYPE,
    KONGHQ_CREDENTIAL,
    SECRET_KIND,
    KICTarget,
    add_plugin_to_annotations,
    add_tags_to_annotations,
    calculate_slug,
    create_kong_plugin,
)
from deckkit.kic.serialize import KICContent

logger = logging.getLogger(__name__)

_SECRET_TYPE_OPAQUE = "Opaque"

# Credential lists of a consumer, in the order their secrets are generated:
# (key in the consumer, credential type, fields copied into the secret).
_CREDENTIAL_KINDS: tuple[tuple[str, str, tuple[str, ...]], ...] = (
    ("keyauth_credentials", "key-auth", ("key",)),
    ("hmacauth_credentials", "hmac-auth", ("username", "secret")),
    ("jwt_secrets", "jwt", ("key", "algorithm", "rsa_public_key", "secret")),
    ("basicauth_credentials", "basic-auth", ("username", "password")),
    ("oauth2_credentials", "oauth2", ("name", "client_id", "client_secret", "client_type")),
    ("acls", "acl", ("group",)),
    ("mtls_auth_credentials", "mtls-auth", ("subject_name", "id")),
)


def create_credential_secret(
    consumer_username: str,
    credential_type: str,
    data_fields: Mapping[str, str | None],
    target: KICTarget | str = KICTarget.V3_GATEWAY,
    class_name: str = DEFAULT_CLASS_NAME,
) -> dict[str, Any]:
    """Build the Secret holding one credential of a consumer.

    KIC v3 marks the credential type with a label, older versions with a data field.
    Fields whose value is None are left out.
    """
    labels: dict[str, str] = {}
    string_data: dict[str, str] = {}
    if KICTarget(target).is_v3:
        labels[KONGHQ_CREDENTIAL] = credential_type
    else:
        string_data[KONG_CRED_TYPE] = credential_type

    string_data.update({key: value for key, value in data_fields.items() if value is not None})

    metadata: dict[str, Any] = {
        "name": calculate_slug(f"{credential_type}-{consumer_username}"),
        "annotations": {INGRESS_CLASS: class_name},
    }
    if labels:
        metadata["labels"] = labels

    return {
        "apiVersion": "v1",
        "kind": SECRET_KIND,
        "metadata": metadata,
        "type": _SECRET_TYPE_OPAQUE,
        "stringData": string_data,
    }


def _credential_fields(
    credential_type: str, credential: dict[str, Any], fields: tuple[str, ...]
) -> dict[str, str | None]:
    data: dict[str, str | None] = {name: credential.get(name) for name in fields}
    if credential_type == "oauth2" and credential.get("hash_secret") is not None:
        data["hash_secret"] = str(bool(credential["hash_secret"])).lower()
    if credential_type == "mtls-auth":
        ca_certificate = credential.get("ca_certificate")
        if isinstance(ca_certificate, dict) and ca_certificate.get("cert") is not None:
            data["ca_certificate"] = ca_certificate["cert"]
    return data


def _add_credentials(
    consumer: dict[str, Any],
    kong_consumer: dict[str, Any],
    kic_content: KICContent,
    target: KICTarget,
    class_name: str,
) -> None:
    username = consumer["username"]
    for key, credential_type, fields in _CREDENTIAL_KINDS:
        for credential in consumer.get(key) or []:
            manifest = create_credential_secret(
                username,
                credential_type,
                _credential_fields(credential_type, credential, fields),
                target,
                class_name,
            )
            kong_consumer.setdefault("credentials", []).append(manifest["metadata"]["name"])
            kic_content.secrets.append(manifest)


def populate_consumers(
    content: dict[str, Any],
    kic_content: KICContent,
    target: KICTarget | str = KICTarget.V3_GATEWAY,
    class_name: str = DEFAULT_CLASS_NAME,
) -> None:
    """Add a KongConsumer, its credential Secrets and its KongPlugins for each consumer."""
    kic_target = KICTarget(target)
    for consumer in content.get("consumers") or []:
        username = consumer.get("username")
        if username is None:
            logger.warning("Consumer username is empty. Please provide a username for the consumer.")
            continue

        annotations: dict[str, str] = {INGRESS_CLASS: class_name}
        kong_consumer: dict[str, Any] = {
            "apiVersion": CONFIGURATION_KONGHQ_V1,
            "kind": KONG_CONSUMER_KIND,
            "metadata": {"name": calculate_slug(username), "annotations": annotations},
            "username": username,
        }
        if consumer.get("custom_id"):
            kong_consumer["custom_id"] = consumer["custom_id"]

        add_tags_to_annotations(consumer.get("tags"), annotations)
        _add_credentials(consumer, kong_consumer, kic_content, kic_target, class_name)

        for plugin in consumer.get("plugins") or []:
            kong_plugin = create_kong_plugin(plugin, username, class_name)
            if kong_plugin is None:
                continue
            kic_content.kong_plugins.append(kong_plugin)
            add_plugin_to_annotations(kong_plugin["metadata"]["name"], annotations)

        kic_content.kong_consumers.append(kong_consumer)