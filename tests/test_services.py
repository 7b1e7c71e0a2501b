import pytest

from deckkit.kic.common import (
    INGRESS_CLASS,
    KONGHQ_CLIENT_CERT,
    KONGHQ_OVERRIDE,
    KONGHQ_PATH,
    KONGHQ_PLUGINS,
    KONGHQ_PROTOCOL,
    KONGHQ_READ_TIMEOUT,
    KONGHQ_RETRIES,
    KONGHQ_TAGS,
    KONGHQ_UPSTREAM_POLICY,
    KICTarget,
    calculate_slug,
)
from deckkit.kic.serialize import KICContent
from deckkit.kic.services import (
    add_annotations_from_service,
    add_plugins_to_service,
    create_k8s_service,
    is_upstream_referenced,
    populate_services,
    process_plugin,
)


def test_service_without_host_uses_selector():
    k8s = create_k8s_service({"name": "My Svc"}, [])
    assert k8s["metadata"]["name"] == calculate_slug("My Svc")
    assert k8s["spec"]["selector"] == {"app": "My Svc"}
    assert "externalName" not in k8s["spec"]


def test_service_with_external_host():
    k8s = create_k8s_service({"name": "svc", "host": "example.com"}, [])
    assert k8s["spec"]["type"] == "ExternalName"
    assert k8s["spec"]["externalName"] == "example.com"
    assert "selector" not in k8s["spec"]


def test_service_pointing_at_upstream_uses_selector():
    k8s = create_k8s_service({"name": "svc", "host": "Up.Local"}, [{"name": "up.local"}])
    assert k8s["spec"]["selector"] == {"app": "svc"}
    assert "type" not in k8s["spec"]


def test_service_ports_and_protocol():
    tcp = create_k8s_service({"name": "svc", "port": 8080}, [])
    udp = create_k8s_service({"name": "svc", "port": 53, "protocol": "udp"}, [])
    assert tcp["spec"]["ports"][0]["port"] == 8080
    assert tcp["spec"]["ports"][0]["targetPort"] == 8080
    assert tcp["spec"]["ports"][0]["protocol"] == "TCP"
    assert udp["spec"]["ports"][0]["protocol"] == "UDP"


@pytest.mark.parametrize("port", [-1, 65536])
def test_service_port_out_of_range(port):
    with pytest.raises(ValueError):
        create_k8s_service({"name": "svc", "port": port}, [])


def test_is_upstream_referenced():
    assert is_upstream_referenced("A.B", [{"name": "a.b"}])
    assert not is_upstream_referenced("a.b", [{"name": None}, {"name": "c"}])


def test_annotations_from_service():
    service = {
        "protocol": "https",
        "path": "/api",
        "client_certificate": {"id": "cert-1"},
        "read_timeout": 5000,
        "retries": 3,
        "tags": ["t1", None, "t2"],
    }
    annotations = {}
    add_annotations_from_service(service, annotations)
    assert annotations[KONGHQ_PROTOCOL] == "https"
    assert annotations[KONGHQ_PATH] == "/api"
    assert annotations[KONGHQ_CLIENT_CERT] == "cert-1"
    assert annotations[KONGHQ_READ_TIMEOUT] == str(service["read_timeout"])
    assert annotations[KONGHQ_RETRIES] == str(service["retries"])
    assert annotations[KONGHQ_TAGS] == "t1,t2"


def test_process_plugin_skips_nameless():
    kic = KICContent()
    annotations = {}
    process_plugin({"config": {}}, "svc", annotations, kic)
    assert kic.kong_plugins == []
    assert annotations == {}


def test_add_plugins_to_service():
    kic = KICContent()
    service = {"name": "svc", "plugins": [{"name": "cors"}, {"name": "acl"}]}
    k8s = create_k8s_service(service, [])
    add_plugins_to_service(service, k8s, kic, "custom")
    names = [plugin["metadata"]["name"] for plugin in kic.kong_plugins]
    assert names == [calculate_slug("svc-cors"), calculate_slug("svc-acl")]
    assert k8s["metadata"]["annotations"][KONGHQ_PLUGINS] == ",".join(names)
    assert kic.kong_plugins[0]["metadata"]["annotations"][INGRESS_CLASS] == "custom"


def test_populate_services_v3_and_v2():
    content = {
        "services": [{"name": "svc", "host": "up"}, {"host": "nameless"}],
        "upstreams": [{"name": "up"}],
    }
    v3 = KICContent()
    populate_services(content, v3, KICTarget.V3_GATEWAY)
    assert len(v3.services) == 1
    assert v3.services[0]["metadata"]["annotations"][KONGHQ_UPSTREAM_POLICY] == (
        v3.kong_upstream_policies[0]["metadata"]["name"]
    )
    assert v3.kong_ingresses == []

    v2 = KICContent()
    populate_services(content, v2, "KICV2_INGRESS")
    assert len(v2.services) == 1
    assert v2.services[0]["metadata"]["annotations"][KONGHQ_OVERRIDE] == (
        v2.kong_ingresses[0]["metadata"]["name"]
    )
    assert v2.kong_upstream_policies == []


def test_populate_services_drops_empty_annotations():
    kic = KICContent()
    populate_services({"services": [{"name": "plain"}]}, kic)
    assert "annotations" not in kic.services[0]["metadata"]
    assert kic.services[0]["spec"]["selector"] == {"app": "plain"}