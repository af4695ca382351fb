"""Feature packages of the service."""
