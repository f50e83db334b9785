"""Pydantic schemas for platform resources and inbound events."""
