"""Export metrics: per-call counters mirrored into Prometheus."""

from __future__ import annotations

from collections import Counter as TallyCounter
from typing import Any, Dict

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

from .models import ResolutionTier

router = APIRouter(tags=["metrics"])

TIER_ATTEMPTS = Counter(
    "figma_export_tier_attempts_total",
    "Image-map resolution attempts by tier and outcome",
    labelnames=("tier", "outcome"),
)

IMAGE_CACHE_LOOKUPS = Counter(
    "figma_export_image_cache_lookups_total",
    "Image byte cache lookups",
    labelnames=("result",),
)

IMAGE_BYTES_DOWNLOADED = Counter(
    "figma_export_image_bytes_downloaded_total",
    "Bytes downloaded for image fills",
)

IMAGE_OUTCOMES = Counter(
    "figma_export_images_total",
    "Image fill outcomes",
    labelnames=("outcome",),
)

BATCH_FAILURES = Counter(
    "figma_export_batch_failures_total",
    "Raster-export batches that failed",
)

NODE_OUTCOMES = Counter(
    "figma_export_nodes_total",
    "Requested nodes by outcome",
    labelnames=("outcome",),
)

FILE_OUTCOMES = Counter(
    "figma_export_files_total",
    "Per-file pipelines by outcome",
    labelnames=("outcome",),
)


class ExportMetrics:
    """Counters for one export call.

    Created by the caller and passed down the pipeline so concurrent export
    calls never share tallies. Every record also feeds the process-wide
    Prometheus counters.
    """

    def __init__(self) -> None:
        self.tier_attempts: TallyCounter[str] = TallyCounter()
        self.tier_failures: TallyCounter[str] = TallyCounter()
        self.cache_hits = 0
        self.cache_misses = 0
        self.bytes_downloaded = 0
        self.images_inlined = 0
        self.images_oversized = 0
        self.download_failures = 0
        self.unresolved_fills = 0
        self.batch_failures = 0
        self.nodes_exported = 0
        self.nodes_missing = 0
        self.files: TallyCounter[str] = TallyCounter()

    def record_tier(self, tier: ResolutionTier, *, success: bool) -> None:
        self.tier_attempts[tier.value] += 1
        if not success:
            self.tier_failures[tier.value] += 1
        TIER_ATTEMPTS.labels(tier=tier.value, outcome="success" if success else "failure").inc()

    def record_cache(self, *, hit: bool) -> None:
        if hit:
            self.cache_hits += 1
        else:
            self.cache_misses += 1
        IMAGE_CACHE_LOOKUPS.labels(result="hit" if hit else "miss").inc()

    def record_download(self, size: int, *, oversized: bool) -> None:
        self.bytes_downloaded += size
        IMAGE_BYTES_DOWNLOADED.inc(size)
        if oversized:
            self.images_oversized += 1
            IMAGE_OUTCOMES.labels(outcome="oversized").inc()
        else:
            self.images_inlined += 1
            IMAGE_OUTCOMES.labels(outcome="inlined").inc()

    def record_download_failure(self) -> None:
        self.download_failures += 1
        IMAGE_OUTCOMES.labels(outcome="download_failed").inc()

    def record_unresolved_fill(self) -> None:
        self.unresolved_fills += 1
        IMAGE_OUTCOMES.labels(outcome="unresolved").inc()

    def record_batch_failure(self) -> None:
        self.batch_failures += 1
        BATCH_FAILURES.inc()

    def record_node(self, *, found: bool) -> None:
        if found:
            self.nodes_exported += 1
        else:
            self.nodes_missing += 1
        NODE_OUTCOMES.labels(outcome="exported" if found else "missing").inc()

    def record_file(self, outcome: str) -> None:
        self.files[outcome] += 1
        FILE_OUTCOMES.labels(outcome=outcome).inc()

    @property
    def cache_hit_rate(self) -> float:
        lookups = self.cache_hits + self.cache_misses
        return self.cache_hits / lookups if lookups else 0.0

    def snapshot(self) -> Dict[str, Any]:
        return {
            "tier_attempts": dict(self.tier_attempts),
            "tier_failures": dict(self.tier_failures),
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "cache_hit_rate": round(self.cache_hit_rate, 3),
            "bytes_downloaded": self.bytes_downloaded,
            "images_inlined": self.images_inlined,
            "images_oversized": self.images_oversized,
            "download_failures": self.download_failures,
            "unresolved_fills": self.unresolved_fills,
            "batch_failures": self.batch_failures,
            "nodes_exported": self.nodes_exported,
            "nodes_missing": self.nodes_missing,
            "files": dict(self.files),
        }


@router.get("/metrics")
async def metrics_endpoint() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


__all__ = ["ExportMetrics", "router"]
