"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from clubspace.api import ops
from clubspace.clubs import container
from clubspace.clubs.api import router as clubs_router
from clubspace.clubs.infra.scheduler import MaintenanceScheduler
from clubspace.clubs.jobs.membership_integrity import MembershipIntegrityJob
from clubspace.infra.store import create_document_store
from clubspace.obs import init as obs_init
from clubspace.settings import settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
	store = create_document_store(settings)
	await store.init()
	services = container.configure(store)
	app.state.club_services = services
	scheduler: MaintenanceScheduler | None = None
	if settings.integrity_job_enabled:
		integrity_job = MembershipIntegrityJob(coordinator=services.coordinator)
		scheduler = MaintenanceScheduler()
		scheduler.start()
		scheduler.schedule_interval(
			"clubs-membership-integrity",
			integrity_job.run_once,
			hours=settings.integrity_job_interval_hours,
		)
		app.state.clubs_scheduler = scheduler
	logger.info("clubspace started", extra={"document_store": settings.document_store_backend})
	try:
		yield
	finally:
		if scheduler is not None:
			scheduler.shutdown()
		container.reset()
		await store.dispose()


app = FastAPI(title="Clubspace API", lifespan=lifespan)
obs_init(app)

app.include_router(ops.router)
app.include_router(clubs_router)
