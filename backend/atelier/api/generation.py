"""Routes for image generation requests and the generation status switch."""

from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, status

from atelier.domain.generation import status as generation_status
from atelier.domain.generation.schemas import TextToImageResponse
from atelier.domain.generation.status import GenerationStatus, GenerationStatusUpdate
from atelier.domain.generation.text_to_image import text_to_image
from atelier.infra.auth import AuthenticatedUser, get_current_user, get_moderator_user
from atelier.obs.logging import get_logger

router = APIRouter(prefix="/generation", tags=["generation"])

audit_logger = get_logger("audit.generation")


@router.get("/status", response_model=GenerationStatus)
async def get_status() -> GenerationStatus:
	return await generation_status.get_generation_status()


@router.put("/status", response_model=GenerationStatus)
async def update_status(
	payload: GenerationStatusUpdate,
	moderator: AuthenticatedUser = Depends(get_moderator_user),
) -> GenerationStatus:
	updated = await generation_status.set_generation_status(payload)
	audit_logger.info(
		"generation.status.update",
		extra={"actor_id": moderator.id, "changes": payload.model_dump(exclude_unset=True, mode="json")},
	)
	return updated


@router.post("/text-to-image", response_model=TextToImageResponse, status_code=status.HTTP_202_ACCEPTED)
async def create_text_to_image(
	payload: Dict[str, Any] = Body(...),
	user: AuthenticatedUser = Depends(get_current_user),
) -> TextToImageResponse:
	# the pipeline validates the body and reports failures as 400
	return await text_to_image(payload, user)
