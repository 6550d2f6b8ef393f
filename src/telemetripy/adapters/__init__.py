"""Adapters connecting the telemetry core to the outside world."""
