# deckkit

Tools for declarative Kong gateway configuration files:

* converting a configuration between formats: Kong Gateway to Konnect
  service packages, Kong Gateway 2.x to 3.x, and the 2.8 to 3.4 migration;
* generating Kong Ingress Controller (KIC) manifests from a Kong
  configuration: Services, Ingresses or Gateway API HTTPRoutes,
  KongPlugins, KongClusterPlugins, KongConsumers with credential Secrets,
  KongConsumerGroups, certificate Secrets, and KongIngresses (KIC v2) or
  KongUpstreamPolicies (KIC v3) for upstreams.

## Installation

```
pip install deckkit
```

## Command line

The `deckkit` command is installed with the package.

```
deckkit version
```

prints the version and commit of the tool.

```
deckkit kong2kic -s kong.yaml -o manifests.yaml --format yaml --target KICV3_GATEWAY --class-name kong
```

reads a Kong configuration (YAML or JSON, `-` for standard input, the
default) and writes KIC manifests.

* `-s`, `--state`: input file, default `-`.
* `-o`, `--output-file`: output file, default `-` (standard output). A name
  without an extension gets the lower-cased target as one, for example
  `manifests.kicv3_gateway`.
* `--format`: `yaml` (documents separated by `---`) or `json`
  (objects written one after another). Default `yaml`.
* `--target`: `KICV3_GATEWAY` (default), `KICV3_INGRESS`, `KICV2_GATEWAY`
  or `KICV2_INGRESS`. Gateway targets produce HTTPRoutes, Ingress targets
  produce Ingresses.
* `--class-name`: ingress class and Gateway parent name, default `kong`.

The command exits with status 1 and prints the error on a bad option, an
unreadable file or an invalid configuration.

## Library use

Convert a configuration file between formats:

```python
from deckkit.convert import Format, convert, parse_format

convert(["kong.yaml"], "kong3.yaml", "yaml",
        parse_format("kong-gateway-2.x"), Format.KONG_GATEWAY_3X)
```

Supported pairs are `kong-gateway` to `konnect`, `kong-gateway-2.x` to
`kong-gateway-3.x`, and `2.8` to `3.4`; each takes one input file. Any other
pair raises `ValueError`. The 2.x to 3.x migration prefixes regex-like route
paths with `~`, gives `rate-limiting-advanced` plugins a random namespace
when they have none, and sets `_format_version` to `3.0`. The 2.8 to 3.4
migration also renames legacy plugin fields (`blacklist` to `deny`,
`whitelist` to `allow`, `functions` to `access` for the function plugins)
and drops `proxy_scheme` from `aws-lambda`. Notices of these changes are
written to standard output.

Generate KIC manifests from a loaded configuration:

```python
from deckkit.convert import load_content
from deckkit.kic.builder import marshal_kong_to_kic
from deckkit.kic.common import KICTarget

content = load_content(["kong.yaml"])
print(marshal_kong_to_kic(content, KICTarget.V3_GATEWAY, "YAML", "kong"))
```

`deckkit.kic.builder.convert_kong_to_kic` returns the manifests as a
`KICContent` of plain dictionaries instead of text, and
`deckkit.kic.writer.write_content_to_file` writes them to a file or, for
`-`, to standard output.

## What it does not do

* It does not connect to a Kong Admin API or to Konnect: there is no sync,
  diff, dump, reset or ping.
* It does not convert distributed-format files into a Kong Gateway file,
  substitute environment variables, or lint configurations.
* Format conversion is available from Python only; the command line offers
  `version` and `kong2kic`.

## Running the tests

```
pip install -e ".[test]"
pytest
```