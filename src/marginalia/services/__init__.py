"""Settings, document persistence, and telemetry services."""
