"""Notification routes."""
