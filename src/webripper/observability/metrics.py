"""
Defines Prometheus metrics for the extraction pipeline.
"""

from __future__ import annotations

from typing import Any, Dict

from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Histogram as _OrigHistogram

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Modules may be imported repeatedly during the test suite; reuse a collector
# that is already registered instead of failing on duplicate names.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):  # type: ignore[override]
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing  # type: ignore[return-value]

        try:
            return metric_cls(name, documentation, *args, **kwargs)  # type: ignore[call-arg]
        except ValueError:
            return _PROM_REGISTRY._names_to_collectors[name]  # type: ignore[return-value]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)  # type: ignore[assignment]
Histogram = _duplicate_safe_factory(_OrigHistogram)  # type: ignore[assignment]


def _create_metrics() -> Dict[str, Any]:
    return {
        "extractions": Counter(
            "webripper_extractions_total",
            "Extraction requests by method and outcome",
            ["method", "outcome"],
        ),
        "mode_fallbacks": Counter(
            "webripper_mode_fallbacks_total",
            "Requests that fell back from the external tool to the heuristic extractor",
            ["reason"],
        ),
        "images": Counter(
            "webripper_images_total",
            "Image inlining attempts by outcome",
            ["outcome"],
        ),
        "external_tool_duration_seconds": Histogram(
            "webripper_external_tool_duration_seconds",
            "Wall-clock duration of external archiving tool runs",
        ),
        "stage_duration_seconds": Histogram(
            "webripper_stage_duration_seconds",
            "Time spent in each pipeline stage",
            ["stage"],
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()
