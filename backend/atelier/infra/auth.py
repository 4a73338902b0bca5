"""Authentication helpers for FastAPI endpoints.

Bearer JWTs are verified with `atelier.infra.jwt`. In development the
`X-User-*` headers are accepted so local tools can act as any user.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from atelier.infra import jwt as jwt_helper
from atelier.settings import settings

MODERATOR_ROLE = "moderator"


@dataclass(slots=True)
class AuthenticatedUser:
	id: int
	username: Optional[str] = None
	roles: Tuple[str, ...] = ()
	tier: Optional[str] = None

	def has_role(self, role: str) -> bool:
		return role in self.roles

	@property
	def is_moderator(self) -> bool:
		return self.has_role(MODERATOR_ROLE)


_bearer_scheme = HTTPBearer(auto_error=False)


def _split_roles(value: object) -> Tuple[str, ...]:
	if isinstance(value, (list, tuple)):
		return tuple(str(r).strip() for r in value if str(r).strip())
	if isinstance(value, str):
		return tuple(part.strip() for part in value.split(",") if part.strip())
	return ()


def verify_access_jwt(token: str) -> AuthenticatedUser:
	try:
		payload = jwt_helper.decode_access(token)
	except Exception:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	try:
		user_id = int(str(payload.get("sub")).strip())
	except ValueError:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	username = payload.get("username") or payload.get("name")
	tier = payload.get("tier")
	return AuthenticatedUser(
		id=user_id,
		username=str(username) if username is not None else None,
		roles=_split_roles(payload.get("roles") or payload.get("role")),
		tier=str(tier) if tier else None,
	)


async def get_optional_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_roles: Optional[str] = Header(default=None, alias="X-User-Roles"),
	x_user_tier: Optional[str] = Header(default=None, alias="X-User-Tier"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[AuthenticatedUser]:
	"""Resolve the user if the request carries credentials, else None."""
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)

	if settings.is_dev() and x_user_id:
		try:
			user_id = int(x_user_id)
		except ValueError:
			raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
		return AuthenticatedUser(id=user_id, roles=_split_roles(x_user_roles), tier=x_user_tier or None)
	return None


async def get_current_user(
	user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> AuthenticatedUser:
	if user is None:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	return user


async def get_moderator_user(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
	if user.is_moderator:
		return user
	raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_role")
