"""Preparation and dispatch of text-to-image requests.

A request is normalized against the caller's tier, its resources are resolved
to AIRs and checked for generation coverage, the prompt is moderated, safety
embeddings are injected, and the resulting job is handed to the orchestrator.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from atelier.domain.common import errors
from atelier.domain.generation.air import embedding_network_key, stringify_air
from atelier.domain.generation.config import get_generation_config
from atelier.domain.generation.constants import (
	DRAFT_BATCH_SIZE,
	DRAFT_QUANTITY_MULTIPLE,
	MINOR_NEGATIVES,
	MINOR_POSITIVES,
	SAFE_NEGATIVES,
	SDXL_CLIP_SKIP,
	SDXL_FAMILY,
	ModelType,
	SafetyEmbedding,
)
from atelier.domain.generation.orchestrator import GenerationOrchestratorClient, get_orchestrator_client
from atelier.domain.generation.resources import GenerationResource, get_resource_data
from atelier.domain.generation.schemas import (
	AdditionalNetwork,
	TextToImageInput,
	TextToImageJob,
	TextToImageResource,
	TextToImageResponse,
)
from atelier.domain.generation.status import get_generation_status
from atelier.infra.auth import AuthenticatedUser
from atelier.moderation import (
	ModerationUnavailable,
	PromptModerationClient,
	get_moderation_client,
	includes_minor,
	includes_nsfw,
	includes_poi,
)
from atelier.obs import metrics as obs_metrics
from atelier.obs.logging import get_logger

logger = get_logger(__name__)


class _ResolvedResource:
	__slots__ = ("data", "request", "air")

	def __init__(self, data: GenerationResource, request: TextToImageResource, air: str) -> None:
		self.data = data
		self.request = request
		self.air = air

	@property
	def id(self) -> int:
		return self.data.id

	@property
	def covered(self) -> bool:
		return bool(self.data.generation_coverage and self.data.generation_coverage.covered)


def _parse(payload: Union[TextToImageInput, Mapping[str, Any]]) -> TextToImageInput:
	if isinstance(payload, TextToImageInput):
		# work on a copy; the pipeline mutates params and resources
		return payload.model_copy(deep=True)
	try:
		return TextToImageInput.model_validate(payload)
	except ValidationError as exc:
		raise errors.from_validation_error(exc) from exc


async def _resolve_resources(requested: List[TextToImageResource]) -> List[_ResolvedResource]:
	by_id: Dict[int, TextToImageResource] = {}
	for resource in requested:
		by_id.setdefault(resource.id, resource)

	resolved: List[_ResolvedResource] = []
	for data in await get_resource_data(by_id.keys()):
		air = stringify_air(base_model=data.base_model, type=data.model.type, model_id=data.model.id, id=data.id)
		if air is None:
			continue
		resolved.append(_ResolvedResource(data, by_id.get(data.id) or TextToImageResource(id=data.id), air))
	return resolved


async def _moderate(prompt: str, moderation: PromptModerationClient, user: AuthenticatedUser) -> None:
	try:
		result = await moderation.moderate_prompt(prompt)
	except ModerationUnavailable as exc:
		obs_metrics.inc_moderation_error()
		logger.error("external-moderation-error", extra={"error": str(exc), "actor_id": user.id})
		return
	if result.flagged:
		obs_metrics.inc_generation("flagged")
		raise errors.bad_request(f"Your prompt was flagged for: {', '.join(result.categories)}")


def _inject(
	networks: Dict[str, AdditionalNetwork],
	prompts: List[str],
	embeddings: tuple[SafetyEmbedding, ...],
	kind: str,
) -> None:
	for embedding in embeddings:
		networks[embedding_network_key(embedding.id)] = AdditionalNetwork(
			type=ModelType.TEXTUAL_INVERSION,
			trigger_word=embedding.trigger_word,
		)
		prompts.insert(0, embedding.trigger_word)
		obs_metrics.inc_safety_injection(kind)


def _join(parts: List[str]) -> str:
	return ", ".join(part for part in parts if part)


async def prepare_text_to_image(
	payload: Union[TextToImageInput, Mapping[str, Any]],
	user: AuthenticatedUser,
	*,
	moderation: Optional[PromptModerationClient] = None,
) -> TextToImageJob:
	"""Validate and normalize a request into a job the orchestrator accepts."""
	data = _parse(payload)
	params = data.params

	status = await get_generation_status()
	if not status.available and not user.is_moderator:
		obs_metrics.inc_generation("disabled")
		raise errors.bad_request("Generation is currently disabled")

	limits = status.limits_for(user.tier)
	params.quantity = min(params.quantity, limits.quantity)
	params.steps = min(params.steps, limits.steps)
	if len(data.resources) > limits.resources:
		raise errors.bad_request("You have exceeded the resources limit.")

	config = get_generation_config()
	is_sdxl = params.base_model in SDXL_FAMILY
	draft = config.draft_settings(params.base_model)
	if params.draft:
		if params.quantity % DRAFT_QUANTITY_MULTIPLE:
			params.quantity = math.ceil(params.quantity / DRAFT_QUANTITY_MULTIPLE) * DRAFT_QUANTITY_MULTIPLE
		params.steps = draft.steps
		params.cfg_scale = draft.cfg_scale
		params.sampler = draft.sampler
		data.resources.append(TextToImageResource(id=draft.resource_id, strength=1))

	resources = await _resolve_resources(data.resources)

	checkpoint = next((r for r in resources if r.data.model.type is ModelType.CHECKPOINT), None)
	if checkpoint is None:
		raise errors.bad_request("A checkpoint is required to make a generation request")

	if params.draft and not any(r.id == draft.resource_id for r in resources):
		raise errors.bad_request(f"Draft mode is currently disabled for {params.base_model.value} models")

	# the draft acceleration resource is exempt from coverage
	uncovered = [r.air for r in resources if not r.covered and r.id != draft.resource_id]
	if uncovered:
		obs_metrics.inc_generation("uncovered")
		raise errors.bad_request(f"Some of your resources are not available for generation: {', '.join(uncovered)}")

	await _moderate(params.prompt, moderation or get_moderation_client(), user)

	model_config = config.for_base_model(params.base_model)
	if not 0 <= params.aspect_ratio < len(model_config.aspect_ratios):
		raise errors.bad_request("Invalid aspect ratio")
	aspect_ratio = model_config.aspect_ratios[params.aspect_ratio]

	networks: Dict[str, AdditionalNetwork] = {
		r.air: AdditionalNetwork(type=r.data.model.type, strength=r.request.strength, trigger_word=r.request.trigger_word)
		for r in resources
		if r.data.model.type in model_config.additional_resource_types
	}

	is_prompt_nsfw = includes_nsfw(params.prompt)
	nsfw = params.nsfw if params.nsfw is not None else is_prompt_nsfw
	has_poi = includes_poi(params.prompt) or any(r.data.model.poi for r in resources)
	if has_poi or includes_minor(params.prompt):
		nsfw = False

	negative_prompts = [params.negative_prompt or ""]
	positive_prompts = [params.prompt]
	if not nsfw and status.sfw_embed:
		_inject(networks, negative_prompts, SAFE_NEGATIVES, "sfw_negative")
	if is_prompt_nsfw and status.minor_fallback:
		_inject(networks, positive_prompts, MINOR_POSITIVES, "minor_positive")
		_inject(networks, negative_prompts, MINOR_NEGATIVES, "minor_negative")

	clip_skip = SDXL_CLIP_SKIP if is_sdxl else params.clip_skip

	job = TextToImageJob(
		base_model=params.base_model,
		model=checkpoint.air,
		additional_networks=networks,
		scheduler=config.scheduler_for(params.sampler),
		steps=params.steps,
		cfg_scale=params.cfg_scale,
		clip_skip=clip_skip,
		seed=params.seed,
		width=aspect_ratio.width,
		height=aspect_ratio.height,
		prompt=_join(positive_prompts),
		negative_prompt=_join(negative_prompts),
		quantity=params.quantity,
		batch_size=DRAFT_BATCH_SIZE if params.draft else 1,
		nsfw=nsfw,
		draft=bool(params.draft),
	)
	logger.info(
		"text_to_image_prepared",
		extra={
			"actor_id": user.id,
			"base_model": params.base_model.value,
			"resources": len(resources),
			"draft": job.draft,
			"nsfw": job.nsfw,
		},
	)
	return job


async def text_to_image(
	payload: Union[TextToImageInput, Mapping[str, Any]],
	user: AuthenticatedUser,
	*,
	moderation: Optional[PromptModerationClient] = None,
	orchestrator: Optional[GenerationOrchestratorClient] = None,
) -> TextToImageResponse:
	job = await prepare_text_to_image(payload, user, moderation=moderation)
	response = await (orchestrator or get_orchestrator_client()).submit(job, user=user)
	obs_metrics.inc_generation("submitted")
	return response
