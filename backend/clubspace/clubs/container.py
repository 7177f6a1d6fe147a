"""Service container wiring the club ledgers to one document store.

The application lifespan calls :func:`configure` with the store it created;
API routers and jobs resolve services through the getters. Tests configure a
fresh memory store per test.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from clubspace.clubs.domain.attendance import AttendanceLedger
from clubspace.clubs.domain.clubs_service import ClubsService
from clubspace.clubs.domain.coordinator import ConsistencyCoordinator
from clubspace.clubs.domain.events_service import EventsService
from clubspace.clubs.domain.membership import MembershipLedger
from clubspace.infra.documents import DocumentStore


@dataclass(slots=True)
class ClubServices:
	store: DocumentStore
	coordinator: ConsistencyCoordinator
	membership: MembershipLedger
	attendance: AttendanceLedger
	clubs: ClubsService
	events: EventsService


_services: Optional[ClubServices] = None


def build(store: DocumentStore) -> ClubServices:
	coordinator = ConsistencyCoordinator(store)
	membership = MembershipLedger(store, coordinator=coordinator)
	attendance = AttendanceLedger(store, coordinator=coordinator)
	return ClubServices(
		store=store,
		coordinator=coordinator,
		membership=membership,
		attendance=attendance,
		clubs=ClubsService(store, membership=membership),
		events=EventsService(store, membership=membership, attendance=attendance),
	)


def configure(store: DocumentStore) -> ClubServices:
	global _services
	_services = build(store)
	return _services


def reset() -> None:
	global _services
	_services = None


def get_services() -> ClubServices:
	if _services is None:
		raise RuntimeError("club services are not configured")
	return _services


def get_membership() -> MembershipLedger:
	return get_services().membership


def get_attendance() -> AttendanceLedger:
	return get_services().attendance


def get_clubs() -> ClubsService:
	return get_services().clubs


def get_events() -> EventsService:
	return get_services().events


def get_coordinator() -> ConsistencyCoordinator:
	return get_services().coordinator
