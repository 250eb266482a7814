"""Hedwig wallet assistant application package."""
