"""Error translation helpers for the clubs API."""

from __future__ import annotations

from fastapi import HTTPException

from clubspace.clubs.domain import exceptions


def to_http_error(exc: exceptions.ClubError) -> HTTPException:
	"""Translate a domain error into an HTTP error carrying its code, kind and identifiers."""
	return HTTPException(status_code=exc.status_code, detail=exc.to_payload())
