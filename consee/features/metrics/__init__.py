"""Metrics route."""
