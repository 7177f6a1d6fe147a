"""Identity resolution for FastAPI endpoints.

Tokens are verified by the identity gateway in front of this service; the
gateway forwards the authenticated subject as ``X-User-Id``. The value is
opaque and trusted as-is.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, status


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	display_name: Optional[str] = None


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_name: Optional[str] = Header(default=None, alias="X-User-Name"),
) -> AuthenticatedUser:
	"""Resolve the authenticated user forwarded by the identity gateway."""
	user_id = (x_user_id or "").strip()
	if not user_id:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="unauthenticated")
	return AuthenticatedUser(id=user_id, display_name=x_user_name)
