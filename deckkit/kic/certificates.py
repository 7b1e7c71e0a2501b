"""Kong certificates and CA certificates turned into Kubernetes Secrets."""

from __future__ import annotations

import hashlib
import logging
from typing import Any

from deckkit.kic.common import (
    DEFAULT_CLASS_NAME,
    INGRESS_CLASS,
    KONGHQ_TAGS,
    SECRET_CA_DIGEST,
    SECRET_KIND,
    calculate_slug,
    present,
)
from deckkit.kic.serialize import KICContent

logger = logging.getLogger(__name__)

_SECRET_TYPE_OPAQUE = "Opaque"
_SECRET_TYPE_TLS = "kubernetes.io/tls"


def _secret(
    prefix: str,
    cert: str,
    secret_type: str,
    string_data: dict[str, str],
    tags: Any,
    class_name: str,
) -> dict[str, Any]:
    digest = hashlib.sha256(cert.encode("utf-8")).hexdigest()
    annotations: dict[str, str] = {INGRESS_CLASS: class_name}
    if tags is not None:
        annotations[KONGHQ_TAGS] = ",".join(present(tags))
    return {
        "apiVersion": "v1",
        "kind": SECRET_KIND,
        "metadata": {"name": calculate_slug(prefix + digest), "annotations": annotations},
        "type": secret_type,
        "stringData": string_data,
    }


def populate_ca_certificates(
    content: dict[str, Any],
    kic_content: KICContent,
    class_name: str = DEFAULT_CLASS_NAME,
) -> None:
    """Add an Opaque Secret holding each CA certificate."""
    for ca_cert in content.get("ca_certificates") or []:
        cert = ca_cert.get("cert")
        if cert is None:
            logger.warning(
                "CA Certificate is empty. This is not recommended. Please, provide a certificate "
                "for the CA before generating Kong Ingress Controller manifests."
            )
            continue
        string_data = {"ca.crt": cert}
        if ca_cert.get("cert_digest") is not None:
            string_data[SECRET_CA_DIGEST] = ca_cert["cert_digest"]
        kic_content.secrets.append(
            _secret("ca-cert-", cert, _SECRET_TYPE_OPAQUE, string_data, ca_cert.get("tags"), class_name)
        )


def populate_certificates(
    content: dict[str, Any],
    kic_content: KICContent,
    class_name: str = DEFAULT_CLASS_NAME,
) -> None:
    """Add a TLS Secret holding each certificate and its key."""
    for certificate in content.get("certificates") or []:
        cert = certificate.get("cert")
        key = certificate.get("key")
        if cert is None or key is None:
            logger.warning(
                "Certificate or Key is empty. This is not recommended. Please, provide a "
                "certificate and key before generating Kong Ingress Controller manifests."
            )
            continue
        string_data = {"tls.crt": cert, "tls.key": key}
        kic_content.secrets.append(
            _secret("cert-", cert, _SECRET_TYPE_TLS, string_data, certificate.get("tags"), class_name)
        )