"""Cursor helpers for infinite (keyset paginated) queries."""

from __future__ import annotations

import base64
import json
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

_DT_PREFIX = "dt:"


class InfiniteQuerySchema(BaseModel):
	"""Base input for endpoints that page with an opaque cursor."""

	cursor: Optional[str] = None
	limit: int = Field(default=50, ge=1, le=200)


def encode_cursor(value: Any, id: int, *, scope: Optional[str] = None) -> str:
	"""Encode a keyset position; `scope` ties the cursor to the ordering that produced it."""
	if isinstance(value, datetime):
		value = f"{_DT_PREFIX}{value.isoformat()}"
	payload: dict[str, Any] = {"v": value, "id": id}
	if scope is not None:
		payload["s"] = scope
	return base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()


def decode_cursor(cursor: str, *, scope: Optional[str] = None) -> tuple[Any, int]:
	"""Return (sort value, id). Raises ValueError on malformed cursors or a scope mismatch."""
	try:
		data = json.loads(base64.urlsafe_b64decode(cursor.encode()).decode())
		value = data["v"]
		last_id = int(data["id"])
	except (ValueError, KeyError, TypeError) as exc:
		raise ValueError("invalid_cursor") from exc
	if scope is not None and data.get("s") != scope:
		raise ValueError("invalid_cursor")
	if isinstance(value, str) and value.startswith(_DT_PREFIX):
		value = datetime.fromisoformat(value[len(_DT_PREFIX):])
	return value, last_id
