"""Infrastructure adapters: Consul client, logging and metrics."""
