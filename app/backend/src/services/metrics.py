"""Prometheus metric definitions for image storage."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

storage_uploads_total = Counter(
    "storage_uploads_total",
    "Total image uploads by outcome.",
    labelnames=["status"],
)

storage_validation_failures_total = Counter(
    "storage_validation_failures_total",
    "Upload inputs rejected by the validation gate, by failed check.",
    labelnames=["check"],
)

storage_bootstrap_seconds = Histogram(
    "storage_bootstrap_seconds",
    "Time spent ensuring the bucket and reconciling its policy.",
)

__all__ = [
    "storage_bootstrap_seconds",
    "storage_uploads_total",
    "storage_validation_failures_total",
]
