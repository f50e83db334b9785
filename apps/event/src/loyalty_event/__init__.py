"""Loyalty point engine driven by commerce order events."""
