import json

import pytest
import yaml

from deckkit.kic.builder import ManifestBuilder, convert_kong_to_kic, marshal_kong_to_kic
from deckkit.kic.common import KICTarget


def _content():
    return {
        "services": [
            {
                "name": "svc",
                "host": "backend",
                "port": 8080,
                "routes": [{"name": "r1", "paths": ["/api"]}],
            }
        ],
        "upstreams": [{"name": "backend", "algorithm": "round-robin"}],
        "consumers": [{"username": "alice", "keyauth_credentials": [{"key": "placeholder"}]}],
        "consumer_groups": [{"name": "gold", "consumers": [{"username": "alice"}]}],
        "plugins": [{"name": "cors", "config": {}}],
    }


def _docs(text):
    return [doc for doc in yaml.safe_load_all(text) if doc is not None]


def test_gateway_target_builds_http_routes():
    kic = ManifestBuilder(KICTarget.V3_GATEWAY).build(_content())
    assert len(kic.http_routes) == 1
    assert kic.ingresses == []


def test_ingress_target_builds_ingresses():
    kic = ManifestBuilder(KICTarget.V3_INGRESS, "custom").build(_content())
    assert len(kic.ingresses) == 1
    assert kic.http_routes == []
    assert kic.ingresses[0]["spec"]["ingressClassName"] == "custom"


def test_v2_uses_kong_ingress_for_upstreams():
    kic = convert_kong_to_kic(_content(), KICTarget.V2_GATEWAY)
    assert len(kic.kong_ingresses) == 1
    assert kic.kong_upstream_policies == []


def test_v3_uses_upstream_policy():
    kic = convert_kong_to_kic(_content(), "KICV3_GATEWAY")
    assert len(kic.kong_upstream_policies) == 1
    assert kic.kong_ingresses == []


def test_consumer_groups_link_consumers():
    kic = convert_kong_to_kic(_content())
    assert kic.kong_consumers[0]["consumerGroups"] == ["gold"]


def test_unknown_target_rejected():
    with pytest.raises(ValueError):
        ManifestBuilder("KICV9_GATEWAY")


def test_marshal_yaml_order_of_kinds():
    docs = _docs(marshal_kong_to_kic(_content(), KICTarget.V3_GATEWAY, "YAML"))
    assert [doc["kind"] for doc in docs] == [
        "KongClusterPlugin",
        "HTTPRoute",
        "KongUpstreamPolicy",
        "Service",
        "Secret",
        "KongConsumer",
        "KongConsumerGroup",
    ]


def test_marshal_attaches_top_level_routes():
    content = {
        "services": [{"name": "svc", "host": "example.com"}],
        "routes": [{"name": "r2", "paths": ["/x"], "service": {"name": "svc"}}],
    }
    docs = _docs(marshal_kong_to_kic(content, KICTarget.V3_INGRESS, "YAML"))
    ingresses = [doc for doc in docs if doc["kind"] == "Ingress"]
    assert len(ingresses) == 1
    assert content["services"][0]["routes"][0]["name"] == "r2"


def test_marshal_json_objects_parse():
    text = marshal_kong_to_kic(_content(), KICTarget.V3_GATEWAY, "JSON")
    decoder = json.JSONDecoder()
    objects = []
    index = 0
    while index < len(text):
        obj, index = decoder.raw_decode(text, index)
        objects.append(obj)
    kinds = [obj["kind"] for obj in objects]
    assert kinds == [doc["kind"] for doc in _docs(marshal_kong_to_kic(_content(), "KICV3_GATEWAY"))]