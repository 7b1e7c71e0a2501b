"""Convert Kong declarative configuration between formats and into Kong Ingress Controller manifests."""

__version__ = "0.1.0"