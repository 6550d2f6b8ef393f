"""Encoders for the telemetry wire formats."""
