"""Confluence-to-OTEL scraper package."""

__all__ = [
    "accumulator",
    "admin_api",
    "config",
    "confluence",
    "gate",
    "http_client",
    "models",
    "runner",
    "scheduler",
    "scraper_engine",
    "session",
    "telemetry",
]
