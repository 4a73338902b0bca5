"""Client for the external prompt moderation service."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Protocol

import httpx

from atelier.settings import settings


@dataclass(frozen=True)
class ModerationResult:
	flagged: bool
	categories: tuple[str, ...] = ()


class ModerationUnavailable(Exception):
	"""The moderation service could not produce a verdict."""


class PromptModerationClient(Protocol):
	async def moderate_prompt(self, prompt: str) -> ModerationResult:
		...


def _parse_result(payload: Mapping[str, Any]) -> ModerationResult:
	results = payload.get("results")
	if not isinstance(results, list) or not results:
		raise ModerationUnavailable("moderation response missing results")
	flagged = False
	categories: list[str] = []
	for result in results:
		if not isinstance(result, Mapping):
			raise ModerationUnavailable("moderation result is not an object")
		flagged = flagged or bool(result.get("flagged"))
		for name, hit in (result.get("categories") or {}).items():
			if hit and name not in categories:
				categories.append(name)
	return ModerationResult(flagged=flagged, categories=tuple(categories))


@dataclass
class ExternalModerationClient(PromptModerationClient):
	"""Posts prompts to a moderation endpoint speaking the `{"input": ...}` -> `{"results": [...]}` shape.

	With no endpoint configured every prompt passes.
	"""

	endpoint: Optional[str] = None
	token: Optional[str] = None
	timeout: float = 2.0
	transport: Optional[httpx.AsyncBaseTransport] = None

	async def moderate_prompt(self, prompt: str) -> ModerationResult:
		if not self.endpoint:
			return ModerationResult(flagged=False)
		headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
		try:
			async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
				response = await client.post(self.endpoint, json={"input": prompt}, headers=headers)
				response.raise_for_status()
				payload = response.json()
		except (httpx.HTTPError, ValueError) as exc:
			raise ModerationUnavailable(str(exc) or exc.__class__.__name__) from exc
		if not isinstance(payload, Mapping):
			raise ModerationUnavailable("moderation response is not an object")
		return _parse_result(payload)


_client: Optional[PromptModerationClient] = None


def get_moderation_client() -> PromptModerationClient:
	global _client
	if _client is None:
		_client = ExternalModerationClient(
			endpoint=settings.external_moderation_endpoint,
			token=settings.external_moderation_token,
			timeout=settings.external_moderation_timeout_seconds,
		)
	return _client
