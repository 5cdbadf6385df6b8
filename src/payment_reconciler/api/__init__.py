"""HTTP surface: health checks and webhook ingress."""
