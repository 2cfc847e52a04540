"""
Defines the Prometheus metrics recorded by the fetch, search and tool layers.
"""

from __future__ import annotations

from typing import Any, Dict

from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Histogram as _OrigHistogram

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Importing this module more than once (test reloads, multiple app instances)
# must not raise "Duplicated timeseries" from the default registry.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            # Registration lost the race; use the collector that won.
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "fetch_requests_total": Counter(
            "webquarry_fetch_requests_total",
            "Total number of outbound HTTP responses by status class",
            ["status_class"],
        ),
        "fetch_failures_total": Counter(
            "webquarry_fetch_failures_total",
            "Outbound HTTP calls that failed before a response arrived",
            ["reason"],
        ),
        "fetch_latency_seconds": Histogram(
            "webquarry_fetch_latency_seconds",
            "Time taken by one outbound HTTP exchange including body read",
            buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 15.0, 20.0],
        ),
        "rate_limit_waits_total": Counter(
            "webquarry_rate_limit_waits_total",
            "Number of acquisitions that had to wait for a token",
            ["op_class"],
        ),
        "rate_limit_wait_seconds": Histogram(
            "webquarry_rate_limit_wait_seconds",
            "Time spent waiting for a rate-limit token",
            ["op_class"],
            buckets=[0.05, 0.1, 0.5, 1.0, 3.0, 5.0, 10.0, 30.0],
        ),
        "rate_limit_rejections_total": Counter(
            "webquarry_rate_limit_rejections_total",
            "Calls rejected by a rate-limit pre-check or upstream 429",
            ["op_class", "source"],
        ),
        "search_requests_total": Counter(
            "webquarry_search_requests_total",
            "Search endpoint calls by outcome",
            ["outcome"],
        ),
        "tool_invocations_total": Counter(
            "webquarry_tool_invocations_total",
            "Tool invocations by tool name and outcome",
            ["tool", "outcome"],
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()
