"""Automatic fixes of plugin configurations when moving to newer Kong versions."""

from __future__ import annotations

import copy
import secrets
import sys
from typing import Any, Iterator

RATE_LIMITING_ADVANCED_PLUGIN_NAME = "rate-limiting-advanced"
RLA_NAMESPACE_DEFAULT_LENGTH = 32
AWS_LAMBDA_PLUGIN_NAME = "aws-lambda"
HTTP_LOG_PLUGIN_NAME = "http-log"
PRE_FUNCTION_PLUGIN_NAME = "pre-function"
POST_FUNCTION_PLUGIN_NAME = "post-function"

_CHARSET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyzj"


def _notice(message: str) -> None:
    sys.stdout.write(message)


def random_string(n: int) -> str:
    """Return ``n`` characters drawn at random from letters and digits."""
    return "".join(secrets.choice(_CHARSET) for _ in range(n))


def _plugins_of(entities: Any) -> Iterator[dict[str, Any]]:
    for entity in entities or []:
        yield from entity.get("plugins") or []


def auto_generate_namespace(plugin: dict[str, Any]) -> None:
    """Give a rate-limiting-advanced plugin a random namespace when it has none."""
    config = plugin.get("config")
    if config is None:
        return
    if config.get("namespace") is None:
        config["namespace"] = random_string(RLA_NAMESPACE_DEFAULT_LENGTH)


def generate_auto_fields(content: dict[str, Any]) -> None:
    """Fill required fields that newer Kong versions no longer generate themselves."""
    plugins: list[dict[str, Any]] = list(content.get("plugins") or [])
    plugins.extend(_plugins_of(content.get("services")))
    plugins.extend(_plugins_of(content.get("routes")))
    plugins.extend(_plugins_of(content.get("consumers")))
    plugins.extend(_plugins_of(content.get("consumer_groups")))
    for plugin in plugins:
        if plugin.get("name") == RATE_LIMITING_ADVANCED_PLUGIN_NAME:
            auto_generate_namespace(plugin)


def update_legacy_field(
    config: dict[str, Any], old_field: str, new_field: str, plugin_name: str
) -> dict[str, Any]:
    """Move the value of ``old_field`` to ``new_field``; return the config."""
    if old_field in config:
        config[new_field] = config.pop(old_field)
        _notice(
            f'Automatically converted legacy configuration field "{old_field}" '
            f'to the new field "{new_field}" in plugin {plugin_name}\n'
        )
    return config


def remove_deprecated_field(
    config: dict[str, Any], field_name: str, plugin_name: str
) -> dict[str, Any]:
    """Drop ``field_name`` from the config; return the config."""
    if field_name in config:
        del config[field_name]
        _notice(
            f'Automatically removed deprecated config field "{field_name}" '
            f"from plugin {plugin_name}\n"
        )
    return config


def update_legacy_plugin_config(plugin: dict[str, Any] | None) -> None:
    """Rewrite the legacy fields of one plugin's configuration."""
    if plugin is None or plugin.get("config") is None:
        return
    config = copy.deepcopy(plugin["config"])
    plugin_name = plugin.get("name") or ""

    config = update_legacy_field(config, "blacklist", "deny", plugin_name)
    config = update_legacy_field(config, "whitelist", "allow", plugin_name)

    if plugin_name == AWS_LAMBDA_PLUGIN_NAME:
        config = remove_deprecated_field(config, "proxy_scheme", plugin_name)
    if plugin_name in (PRE_FUNCTION_PLUGIN_NAME, POST_FUNCTION_PLUGIN_NAME):
        config = update_legacy_field(config, "functions", "access", plugin_name)

    plugin["config"] = config


def update_plugins(content: dict[str, Any]) -> None:
    """Rewrite legacy configuration fields of every plugin in the content."""
    for plugin in content.get("plugins") or []:
        update_legacy_plugin_config(plugin)

    for service in content.get("services") or []:
        for plugin in service.get("plugins") or []:
            update_legacy_plugin_config(plugin)
        for plugin in _plugins_of(service.get("routes")):
            update_legacy_plugin_config(plugin)

    for plugin in _plugins_of(content.get("routes")):
        update_legacy_plugin_config(plugin)

    for plugin in _plugins_of(content.get("consumers")):
        update_legacy_plugin_config(plugin)

    # Consumer group plugins are only reported on: the rewritten configuration
    # lands on a stand-in, leaving the group's own plugin as it was.
    for plugin in _plugins_of(content.get("consumer_groups")):
        update_legacy_plugin_config(
            {"id": plugin.get("id"), "name": plugin.get("name"), "config": plugin.get("config")}
        )