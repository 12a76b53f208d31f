"""
Telemetry Module
================

Observability for the reporting API.

Components:
- sentry.py: Error tracking

Environment Variables:
- SENTRY_DSN: Sentry project DSN

Usage:
    from clickstream_api.telemetry import init_sentry

    init_sentry()
"""

from clickstream_api.telemetry.sentry import (
    init_sentry,
    capture_exception,
)


__all__ = [
    "init_sentry",
    "capture_exception",
]
