"""Kong Ingress Controller manifest generation from Kong declarative configuration."""