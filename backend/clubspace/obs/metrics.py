"""Central registry for Prometheus metrics used across the service."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNTER = Counter(
	"clubspace_http_requests_total",
	"Total HTTP requests processed",
	["route", "method", "status"],
)

REQUEST_LATENCY = Histogram(
	"clubspace_http_request_duration_seconds",
	"HTTP request latency in seconds",
	["route", "method"],
	buckets=(0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0),
)

CLUBS_CREATED = Counter(
	"clubspace_clubs_created_total",
	"Clubs created",
)

CLUBS_ARCHIVED = Counter(
	"clubspace_clubs_archived_total",
	"Clubs archived by their owner",
)

MEMBERSHIP_MUTATIONS = Counter(
	"clubspace_membership_mutations_total",
	"Membership ledger mutations",
	["action", "result"],
)

EVENTS_CREATED = Counter(
	"clubspace_events_created_total",
	"Club events created",
)

EVENT_TRANSITIONS = Counter(
	"clubspace_event_transitions_total",
	"Event lifecycle transitions",
	["status"],
)

EVENT_RSVPS_UPDATED = Counter(
	"clubspace_event_rsvps_updated_total",
	"RSVP upserts",
	["status"],
)

PERMISSION_DENIALS = Counter(
	"clubspace_permission_denials_total",
	"Actions refused by the permission model",
	["action"],
)

GROUPED_WRITE_FAILURES = Counter(
	"clubspace_grouped_write_failures_total",
	"Grouped writes refused by a precondition",
	["reason"],
)

COUNTER_DRIFT = Counter(
	"clubspace_counter_drift_total",
	"Denormalized counters found out of sync with their records",
	["entity", "field"],
)

CHANGE_STREAM_FAILURES = Counter(
	"clubspace_change_stream_failures_total",
	"Change records that could not be published",
	["stream"],
)

DOCUMENT_STORE_UP = Gauge("clubspace_document_store_up", "Document store availability (1=up,0=down)")

BACKGROUND_RUNS = Counter(
	"clubspace_jobs_runs_total",
	"Background job executions",
	["name", "result"],
)

BACKGROUND_DURATION = Histogram(
	"clubspace_jobs_duration_seconds",
	"Background job duration",
	["name"],
	buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 15.0, 30.0, 60.0),
)


def observe_request(route: str, method: str, status: int, elapsed_seconds: float) -> None:
	REQUEST_COUNTER.labels(route=route, method=method, status=str(status)).inc()
	REQUEST_LATENCY.labels(route=route, method=method).observe(elapsed_seconds)


def inc_club_created() -> None:
	CLUBS_CREATED.inc()


def inc_club_archived() -> None:
	CLUBS_ARCHIVED.inc()


def inc_membership_mutation(action: str, result: str) -> None:
	MEMBERSHIP_MUTATIONS.labels(action=action, result=result).inc()


def inc_event_created() -> None:
	EVENTS_CREATED.inc()


def inc_event_transition(status: str) -> None:
	EVENT_TRANSITIONS.labels(status=status).inc()


def inc_rsvp_updated(status: str) -> None:
	EVENT_RSVPS_UPDATED.labels(status=status).inc()


def inc_permission_denied(action: str) -> None:
	PERMISSION_DENIALS.labels(action=action).inc()


def inc_grouped_write_failure(reason: str) -> None:
	GROUPED_WRITE_FAILURES.labels(reason=reason).inc()


def inc_counter_drift(entity: str, field: str) -> None:
	COUNTER_DRIFT.labels(entity=entity, field=field).inc()


def inc_change_stream_failure(stream: str) -> None:
	CHANGE_STREAM_FAILURES.labels(stream=stream).inc()


def set_document_store_up(up: bool) -> None:
	DOCUMENT_STORE_UP.set(1 if up else 0)
