"""Operational telemetry helpers."""
