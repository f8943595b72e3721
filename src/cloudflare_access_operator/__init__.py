"""Kubernetes operator managing Cloudflare Access CA certificates."""

__version__ = "0.1.0"
