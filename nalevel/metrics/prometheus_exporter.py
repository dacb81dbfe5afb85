"""Prometheus exporter helpers."""

from __future__ import annotations

from prometheus_client import Counter


stage_completions_total = Counter(
    "onboarding_stage_completions_total",
    "Number of onboarding stages completed and persisted.",
    ["stage"],
)

persistence_failures_total = Counter(
    "onboarding_persistence_failures_total",
    "Number of stage submissions rejected by the user backend.",
)

redirects_total = Counter(
    "onboarding_redirects_total",
    "Number of page requests redirected by the onboarding guard.",
    ["reason"],
)
