"""HTTP client for the external generation orchestrator."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import httpx
from fastapi import HTTPException, status

from atelier.domain.generation.schemas import TextToImageJob, TextToImageResponse
from atelier.infra.auth import AuthenticatedUser
from atelier.obs.logging import get_logger
from atelier.settings import settings

logger = get_logger(__name__)


@dataclass
class GenerationOrchestratorClient:
	endpoint: Optional[str] = None
	token: Optional[str] = None
	timeout: float = 10.0
	transport: Optional[httpx.AsyncBaseTransport] = None

	async def submit(self, job: TextToImageJob, *, user: AuthenticatedUser) -> TextToImageResponse:
		if not self.endpoint:
			raise HTTPException(status.HTTP_503_SERVICE_UNAVAILABLE, detail="generation_backend_not_configured")

		body = {
			"tags": ["textToImage", f"user:{user.id}"],
			"steps": [{"type": "textToImage", "input": job.model_dump(mode="json")}],
		}
		headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
		try:
			async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
				response = await client.post(f"{self.endpoint.rstrip('/')}/workflows", json=body, headers=headers)
				response.raise_for_status()
				payload = response.json()
			workflow_id = str(payload["id"])
		except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
			logger.error(
				"generation_dispatch_failed",
				extra={"error": str(exc) or exc.__class__.__name__, "actor_id": user.id},
			)
			raise HTTPException(status.HTTP_502_BAD_GATEWAY, detail="generation_backend_unavailable") from exc

		return TextToImageResponse(workflow_id=workflow_id, status=str(payload.get("status") or "unassigned"), job=job)


_client: Optional[GenerationOrchestratorClient] = None


def get_orchestrator_client() -> GenerationOrchestratorClient:
	global _client
	if _client is None:
		_client = GenerationOrchestratorClient(
			endpoint=settings.orchestrator_endpoint,
			token=settings.orchestrator_access_token,
			timeout=settings.orchestrator_timeout_seconds,
		)
	return _client
