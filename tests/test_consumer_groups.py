from deckkit.kic.common import INGRESS_CLASS, KONGHQ_PLUGINS, KONGHQ_TAGS
from deckkit.kic.consumer_groups import create_consumer_group_plugin, populate_consumer_groups
from deckkit.kic.consumers import populate_consumers
from deckkit.kic.serialize import KICContent


def _content():
    return {
        "consumers": [{"username": "alice"}, {"username": "bob"}],
        "consumer_groups": [
            {
                "name": "gold",
                "tags": ["premium"],
                "consumers": [{"username": "alice"}, {}],
                "plugins": [{"name": "rate-limiting", "config": {"limit": [10]}}],
            }
        ],
    }


def test_create_consumer_group_plugin():
    plugin = create_consumer_group_plugin({"name": "acl", "config": {"allow": ["a"]}}, "gold", "custom")
    assert plugin["metadata"]["name"] == "gold-acl"
    assert plugin["metadata"]["annotations"] == {INGRESS_CLASS: "custom"}
    assert plugin["plugin"] == "acl"
    assert plugin["config"] == {"allow": ["a"]}
    assert plugin["kind"] == "KongPlugin"


def test_nameless_plugin_gives_none():
    assert create_consumer_group_plugin({"config": {}}, "gold") is None


def test_group_manifest_and_plugins():
    content = _content()
    kic = KICContent()
    populate_consumers(content, kic)
    populate_consumer_groups(content, kic)
    assert len(kic.kong_consumer_groups) == 1
    group = kic.kong_consumer_groups[0]
    assert group["metadata"]["name"] == "gold"
    assert group["apiVersion"] == "configuration.konghq.com/v1beta1"
    assert group["metadata"]["annotations"][KONGHQ_TAGS] == "premium"
    assert group["metadata"]["annotations"][KONGHQ_PLUGINS] == "gold-rate-limiting"
    assert [p["metadata"]["name"] for p in kic.kong_plugins] == ["gold-rate-limiting"]


def test_members_get_group():
    content = _content()
    kic = KICContent()
    populate_consumers(content, kic)
    populate_consumer_groups(content, kic)
    by_name = {c["username"]: c for c in kic.kong_consumers}
    assert by_name["alice"]["consumerGroups"] == ["gold"]
    assert "consumerGroups" not in by_name["bob"]


def test_nameless_group_skipped():
    kic = KICContent()
    populate_consumer_groups({"consumer_groups": [{"plugins": [{"name": "acl"}]}]}, kic)
    assert kic.kong_consumer_groups == []
    assert kic.kong_plugins == []