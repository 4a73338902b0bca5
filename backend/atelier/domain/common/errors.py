"""HTTP error builders shared by domain services.

Services raise these directly; the API layer's handlers render them with the
request id attached.
"""

from __future__ import annotations

from fastapi import HTTPException, status
from pydantic import ValidationError


def bad_request(detail: str) -> HTTPException:
	return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


def forbidden(detail: str = "forbidden") -> HTTPException:
	return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def not_found(detail: str = "not_found") -> HTTPException:
	return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def conflict(detail: str) -> HTTPException:
	return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


def from_validation_error(exc: ValidationError) -> HTTPException:
	"""Collapse a pydantic error into a 400 carrying the first message."""
	errors = exc.errors()
	if not errors:
		return bad_request("invalid_input")
	first = errors[0]
	message = str(first.get("msg") or "invalid_input")
	# custom ValueError messages arrive prefixed by pydantic
	if message.startswith("Value error, "):
		message = message[len("Value error, "):]
	return bad_request(message)
