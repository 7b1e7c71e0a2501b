import pytest
import yaml

from deckkit.convert import (
    Format,
    convert,
    convert_2x_to_3x,
    convert_28x_to_34x,
    convert_gateway_to_konnect,
    is_path_regex_like,
    load_content,
    migrate_route_paths,
    parse_format,
    remove_service_name,
    service_to_service_package,
)


@pytest.mark.parametrize(
    "key, expected",
    [
        ("kong-gateway", Format.KONG_GATEWAY),
        ("kong-gateway-2.x", Format.KONG_GATEWAY_2X),
        ("kong-gateway-3.x", Format.KONG_GATEWAY_3X),
        ("koNNect", Format.KONNECT),
    ],
)
def test_parse_format_valid(key, expected):
    assert parse_format(key) == expected


def test_parse_format_invalid():
    with pytest.raises(ValueError, match="invalid format: 'k42'"):
        parse_format("k42")


def _zero_ids(package):
    for version in package["versions"]:
        version["implementation"]["kong"]["service"].pop("id", None)
    return package


def test_service_to_service_package():
    got = service_to_service_package({"name": "foo", "host": "foo.example.com"})
    assert _zero_ids(got) == {
        "name": "foo",
        "description": "placeholder description for foo service package",
        "versions": [
            {
                "version": "v1",
                "implementation": {
                    "type": "kong-gateway",
                    "kong": {"service": {"host": "foo.example.com"}},
                },
            }
        ],
    }


def test_service_to_service_package_requires_name():
    with pytest.raises(ValueError, match="service-id"):
        service_to_service_package({"id": "service-id", "host": "foo.example.com"})


def test_remove_service_name_assigns_new_id():
    service = {"id": "old", "name": "s1", "host": "h"}
    got = remove_service_name(service)
    assert "name" not in got
    assert got["id"] != "old"
    assert service == {"id": "old", "name": "s1", "host": "h"}


def test_convert_gateway_to_konnect_none():
    with pytest.raises(ValueError):
        convert_gateway_to_konnect(None)


def test_convert_gateway_to_konnect_nameless_service():
    content = {
        "services": [
            {
                "id": "1404df16-48c4-42e6-beab-b7f8792587dc",
                "host": "mockbin.org",
                "routes": [{"name": "r1", "https_redirect_status_code": 301, "paths": ["/r1"]}],
            }
        ]
    }
    with pytest.raises(ValueError):
        convert_gateway_to_konnect(content)


def test_convert_gateway_to_konnect():
    content = {
        "services": [
            {
                "id": "1404df16-48c4-42e6-beab-b7f8792587dc",
                "name": "s1",
                "host": "mockbin.org",
                "routes": [{"name": "r1", "https_redirect_status_code": 301, "paths": ["/r1"]}],
            }
        ]
    }
    got = convert_gateway_to_konnect(content)
    assert "services" not in got
    assert len(got["service_packages"]) == 1
    package = got["service_packages"][0]
    assert package["name"] == "s1"
    inner = package["versions"][0]["implementation"]["kong"]["service"]
    assert inner["host"] == "mockbin.org"
    assert inner["routes"] == content["services"][0]["routes"]
    assert "name" not in inner


def test_is_path_regex_like():
    assert is_path_regex_like("/foo/\\d+")
    assert is_path_regex_like("/foo[0-9]")
    assert not is_path_regex_like("/plain/path-1.0")


def test_migrate_route_paths():
    route = {"paths": ["/plain", "/v[0-9]+", "~/already(.*)"]}
    assert migrate_route_paths(route) is True
    assert route["paths"] == ["/plain", "~/v[0-9]+", "~/already(.*)"]
    assert migrate_route_paths({"paths": ["/plain"]}) is False


def test_convert_auto_fields():
    rla = lambda: {"name": "rate-limiting-advanced", "config": {}}  # noqa: E731
    content = {
        "services": [{"name": "s1", "host": "httpbin.org", "plugins": [rla()]}],
        "routes": [{"name": "r1", "paths": ["/r1"], "plugins": [rla()]}],
        "consumers": [{"username": "foo", "plugins": [rla()]}],
        "consumer_groups": [{"name": "my_consumer_group", "plugins": [rla()]}],
        "plugins": [rla()],
    }
    got = convert_2x_to_3x(content, "-", True)
    assert got["plugins"][0]["config"]["namespace"]
    assert got["services"][0]["plugins"][0]["config"]["namespace"]
    assert got["routes"][0]["plugins"][0]["config"]["namespace"]
    assert got["consumers"][0]["plugins"][0]["config"]["namespace"]
    assert got["consumer_groups"][0]["plugins"][0]["config"]["namespace"]
    assert "namespace" not in content["plugins"][0]["config"]


def test_convert_2x_to_3x_sets_version_and_paths(capsys):
    content = {
        "_format_version": "1.1",
        "services": [{"name": "s", "routes": [{"name": "r", "paths": ["/a[0-9]"]}]}],
    }
    got = convert_2x_to_3x(content, "in.yaml", False)
    assert got["_format_version"] == "3.0"
    assert got["services"][0]["routes"][0]["paths"] == ["~/a[0-9]"]
    out = capsys.readouterr().out
    assert "in.yaml" in out and "'1.1' to '3.0'" in out


def test_convert_2x_to_3x_none():
    with pytest.raises(ValueError):
        convert_2x_to_3x(None, "-", True)


def test_convert_28x_to_34x_updates_plugins():
    content = {
        "_format_version": "1.1",
        "plugins": [{"name": "ip-restriction", "config": {"whitelist": ["10.0.0.1"]}}],
    }
    got = convert_28x_to_34x(content, "-")
    assert got["_format_version"] == "3.0"
    assert got["plugins"][0]["config"] == {"allow": ["10.0.0.1"]}


def _write(path, data):
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return str(path)


def test_load_content_merges_files(tmp_path):
    first = _write(tmp_path / "a.yaml", {"_format_version": "3.0", "services": [{"name": "a"}]})
    second = _write(tmp_path / "b.yaml", {"_format_version": "3.0", "services": [{"name": "b"}]})
    got = load_content([first, second])
    assert got == {"_format_version": "3.0", "services": [{"name": "a"}, {"name": "b"}]}


@pytest.mark.parametrize(
    "source, target",
    [(Format.KONNECT, Format.KONG_GATEWAY), (Format.KONG_GATEWAY_3X, Format.KONG_GATEWAY_2X)],
)
def test_convert_invalid_conversion(tmp_path, source, target):
    input_file = _write(tmp_path / "in.yaml", {"services": [{"name": "s"}]})
    with pytest.raises(ValueError, match="cannot convert"):
        convert([input_file], str(tmp_path / "out.yaml"), "yaml", source, target)


def test_convert_nameless_service(tmp_path):
    input_file = _write(tmp_path / "in.yaml", {"services": [{"id": "x", "host": "h"}]})
    with pytest.raises(ValueError):
        convert([input_file], str(tmp_path / "out.yaml"), "yaml",
                Format.KONG_GATEWAY, Format.KONNECT)


def test_convert_missing_input(tmp_path):
    with pytest.raises(OSError):
        convert([str(tmp_path / "input-does-not-exist.yaml")], str(tmp_path / "out.yaml"),
                "yaml", Format.KONG_GATEWAY, Format.KONNECT)


def test_convert_gateway_to_konnect_file(tmp_path):
    input_file = _write(
        tmp_path / "in.yaml",
        {"_format_version": "1.1", "services": [{"name": "svc1", "host": "mockbin.org"}]},
    )
    output = tmp_path / "out.yaml"
    convert([input_file], str(output), "yaml", Format.KONG_GATEWAY, Format.KONNECT)
    got = yaml.safe_load(output.read_text(encoding="utf-8"))
    assert "services" not in got
    assert got["service_packages"][0]["name"] == "svc1"


def test_convert_2x_to_3x_file(tmp_path):
    input_file = _write(
        tmp_path / "in.yaml",
        {"services": [{"name": "s", "routes": [{"name": "r", "paths": ["/x\\d+"]}]}]},
    )
    output = tmp_path / "out.yaml"
    convert([input_file], str(output), "yaml", "kong-gateway-2.x", "kong-gateway-3.x")
    got = yaml.safe_load(output.read_text(encoding="utf-8"))
    assert got["_format_version"] == "3.0"
    assert got["services"][0]["routes"][0]["paths"] == ["~/x\\d+"]


def test_convert_rejects_multiple_files_for_konnect(tmp_path):
    first = _write(tmp_path / "a.yaml", {"services": [{"name": "a"}]})
    second = _write(tmp_path / "b.yaml", {"services": [{"name": "b"}]})
    with pytest.raises(ValueError, match="only one input file"):
        convert([first, second], str(tmp_path / "out.yaml"), "yaml",
                Format.KONG_GATEWAY, Format.KONNECT)