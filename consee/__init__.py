"""Consee: an administrative control plane for Consul KV and ACL."""

__version__ = "0.1.0"
