"""Central registry for Prometheus metrics used across the backend."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

REQUEST_COUNTER = Counter(
	"atelier_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"atelier_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

GENERATION_REQUESTS = Counter(
	"atelier_generation_requests_total",
	"Text-to-image requests by outcome",
	["outcome"],
)

GENERATION_SAFETY_INJECTIONS = Counter(
	"atelier_generation_safety_injections_total",
	"Safety embeddings injected into generation requests",
	["kind"],
)

MODERATION_CLIENT_ERRORS = Counter(
	"atelier_external_moderation_errors_total",
	"External prompt moderation calls that failed",
)

HOME_BLOCKS_RESOLVED = Counter(
	"atelier_home_blocks_resolved_total",
	"Home blocks resolved per type and whether they rendered",
	["type", "rendered"],
)


def observe_request(route: str, method: str, status: int, duration_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(duration_seconds)


def inc_generation(outcome: str) -> None:
	GENERATION_REQUESTS.labels(outcome=outcome).inc()


def inc_safety_injection(kind: str) -> None:
	GENERATION_SAFETY_INJECTIONS.labels(kind=kind).inc()


def inc_moderation_error() -> None:
	MODERATION_CLIENT_ERRORS.inc()


def inc_home_block(block_type: str, rendered: bool) -> None:
	HOME_BLOCKS_RESOLVED.labels(type=block_type, rendered="true" if rendered else "false").inc()
