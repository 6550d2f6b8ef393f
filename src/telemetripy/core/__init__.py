"""Core telemetry domain: models, ports and pure components."""
