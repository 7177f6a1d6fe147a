"""Operations endpoints providing health checks, metrics, and admin controls."""

from __future__ import annotations

import time
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from clubspace.clubs import container
from clubspace.clubs.api._errors import to_http_error
from clubspace.clubs.domain import models
from clubspace.clubs.domain.coordinator import ConsistencyCoordinator
from clubspace.clubs.domain.exceptions import ClubError
from clubspace.clubs.jobs.membership_integrity import MembershipIntegrityJob
from clubspace.obs import health
from clubspace.settings import settings

router = APIRouter(prefix="", tags=["ops"])


def _resolve_token(x_admin_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
	if x_admin_token:
		return x_admin_token
	if authorization and authorization.lower().startswith("bearer "):
		return authorization.split(" ", 1)[1]
	return None


async def require_admin(
	X_Admin_Token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
	authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> None:
	token = settings.obs_admin_token
	if not token:
		raise HTTPException(status.HTTP_403_FORBIDDEN, detail="admin_token_not_configured")
	if _resolve_token(X_Admin_Token, authorization) != token:
		raise HTTPException(status.HTTP_403_FORBIDDEN, detail="forbidden")


async def require_metrics_access(
	X_Admin_Token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
	authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> None:
	if settings.obs_metrics_public:
		return
	await require_admin(X_Admin_Token=X_Admin_Token, authorization=authorization)


@router.get("/health/live")
async def health_live() -> dict[str, str]:
	return await health.liveness()


@router.get("/health/ready")
async def health_ready() -> Response:
	status_code, payload = await health.readiness()
	return JSONResponse(content=payload, status_code=status_code)


@router.get("/metrics")
async def prometheus_metrics(_: None = Depends(require_metrics_access)) -> Response:
	return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@router.post("/ops/clubs/{club_id}/reconcile", response_model=models.CounterReport)
async def reconcile_club_endpoint(
	club_id: str,
	repair: bool = True,
	_: None = Depends(require_admin),
	coordinator: ConsistencyCoordinator = Depends(container.get_coordinator),
) -> models.CounterReport:
	try:
		return await coordinator.reconcile_club(club_id, repair=repair)
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.post("/ops/events/{event_id}/reconcile", response_model=models.CounterReport)
async def reconcile_event_endpoint(
	event_id: str,
	repair: bool = True,
	_: None = Depends(require_admin),
	coordinator: ConsistencyCoordinator = Depends(container.get_coordinator),
) -> models.CounterReport:
	try:
		return await coordinator.reconcile_event(event_id, repair=repair)
	except ClubError as exc:
		raise to_http_error(exc) from exc


@router.post("/ops/integrity/run")
async def run_integrity_job(
	_: None = Depends(require_admin),
	coordinator: ConsistencyCoordinator = Depends(container.get_coordinator),
) -> dict[str, object]:
	start = time.perf_counter()
	repaired = await MembershipIntegrityJob(coordinator=coordinator).run_once()
	return {
		"status": "ok",
		"repaired": repaired,
		"duration_ms": round((time.perf_counter() - start) * 1000, 2),
	}
