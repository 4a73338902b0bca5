from unittest.mock import AsyncMock, patch

import pytest
from fastapi import HTTPException

from atelier.domain.generation.constants import BaseModelSetType, ModelType
from atelier.domain.generation.resources import GenerationCoverage, GenerationResource, ResourceModel
from atelier.domain.generation.schemas import TextToImageJob, TextToImageResponse
from atelier.domain.generation.status import GenerationStatusUpdate, set_generation_status
from atelier.domain.generation.text_to_image import prepare_text_to_image, text_to_image
from atelier.infra.auth import AuthenticatedUser
from atelier.moderation import ModerationResult, ModerationUnavailable

SDXL_DRAFT_ID = 391999
SDXL_FAMILY_MODELS = ["SDXL", "Pony", "SDXLDistilled"]
CHECKPOINT_AIR = "urn:air:sdxl:checkpoint:civitai:11@1"
LORA_AIR = "urn:air:sdxl:lora:civitai:12@2"


class StubModeration:
	def __init__(self, result=None, error=None):
		self.result = result or ModerationResult(flagged=False)
		self.error = error
		self.prompts = []

	async def moderate_prompt(self, prompt):
		self.prompts.append(prompt)
		if self.error is not None:
			raise self.error
		return self.result


def _resource(id, model_id, type, *, base_model="SDXL 1.0", covered=True, poi=False):
	return GenerationResource(
		id=id,
		name=f"v{id}",
		base_model=base_model,
		model=ResourceModel(id=model_id, name=f"m{model_id}", type=type, poi=poi),
		generation_coverage=GenerationCoverage(covered=covered),
	)


CHECKPOINT = _resource(1, 11, ModelType.CHECKPOINT)
LORA = _resource(2, 12, ModelType.LORA)
DRAFT_LORA = _resource(SDXL_DRAFT_ID, 350000, ModelType.LORA, covered=False)


def _payload(prompt="a castle on a hill", resources=None, **params):
	base = {
		"prompt": prompt,
		"negative_prompt": "blurry",
		"cfg_scale": 7,
		"sampler": "Euler a",
		"seed": 1234,
		"clip_skip": 1,
		"steps": 30,
		"quantity": 2,
		"aspect_ratio": "1",
		"base_model": "SDXL",
	}
	base.update(params)
	if resources is None:
		resources = [{"id": 1}, {"id": 2, "strength": 0.8, "trigger_word": "glowing"}]
	return {"params": base, "resources": resources}


@pytest.fixture
def user():
	return AuthenticatedUser(id=1, username="maker")


@pytest.fixture
def resource_data():
	with patch(
		"atelier.domain.generation.text_to_image.get_resource_data",
		new=AsyncMock(return_value=[CHECKPOINT, LORA]),
	) as mock:
		yield mock


async def _prepare(payload, user, moderation=None):
	return await prepare_text_to_image(payload, user, moderation=moderation or StubModeration())


@pytest.mark.asyncio
async def test_prepares_sfw_sdxl_job(user, resource_data):
	moderation = StubModeration()
	job = await prepare_text_to_image(_payload(quantity=10, steps=80), user, moderation=moderation)

	assert isinstance(job, TextToImageJob)
	assert job.model == CHECKPOINT_AIR
	assert job.quantity == 4
	assert job.steps == 50
	assert job.width == 1216 and job.height == 832
	assert job.scheduler == "EulerA"
	assert job.clip_skip == 2
	assert job.batch_size == 1
	assert job.nsfw is False
	assert job.prompt == "a castle on a hill"
	assert job.negative_prompt == "civit_nsfw, blurry"
	assert set(job.additional_networks) == {LORA_AIR, "@civitai/106916"}
	lora = job.additional_networks[LORA_AIR]
	assert lora.type is ModelType.LORA
	assert lora.strength == 0.8
	assert lora.trigger_word == "glowing"
	assert job.additional_networks["@civitai/106916"].type is ModelType.TEXTUAL_INVERSION
	assert moderation.prompts == ["a castle on a hill"]
	resource_data.assert_awaited_once()
	assert sorted(resource_data.await_args.args[0]) == [1, 2]


@pytest.mark.asyncio
async def test_tier_limits_follow_user_tier(resource_data):
	founder = AuthenticatedUser(id=2, tier="founder")
	job = await _prepare(_payload(quantity=10, steps=80), founder)
	assert job.quantity == 8
	assert job.steps == 60


@pytest.mark.asyncio
async def test_unknown_tier_uses_free_limits(resource_data):
	job = await _prepare(_payload(quantity=10), AuthenticatedUser(id=2, tier="mystery"))
	assert job.quantity == 4


@pytest.mark.asyncio
async def test_disabled_generation_rejects_non_moderators(user, resource_data):
	await set_generation_status(GenerationStatusUpdate(available=False))

	with pytest.raises(HTTPException) as exc:
		await _prepare(_payload(), user)
	assert exc.value.status_code == 400
	assert exc.value.detail == "Generation is currently disabled"

	moderator = AuthenticatedUser(id=3, roles=("moderator",))
	job = await _prepare(_payload(), moderator)
	assert job.model == CHECKPOINT_AIR


@pytest.mark.asyncio
async def test_resource_limit(user, resource_data):
	resources = [{"id": i} for i in range(1, 11)]
	with pytest.raises(HTTPException) as exc:
		await _prepare(_payload(resources=resources), user)
	assert exc.value.detail == "You have exceeded the resources limit."
	resource_data.assert_not_awaited()


@pytest.mark.asyncio
async def test_invalid_payload_is_bad_request(user):
	with pytest.raises(HTTPException) as exc:
		await _prepare(_payload(resources=[]), user)
	assert exc.value.status_code == 400
	assert exc.value.detail == "You must select at least one resource"


@pytest.mark.asyncio
@pytest.mark.parametrize("base_model", SDXL_FAMILY_MODELS)
async def test_sdxl_family_forces_clip_skip(user, resource_data, base_model):
	job = await _prepare(_payload(base_model=base_model, clip_skip=1), user)
	assert job.base_model.value == base_model
	assert job.clip_skip == 2
	assert (job.width, job.height) == (1216, 832)


@pytest.mark.asyncio
@pytest.mark.parametrize("base_model", SDXL_FAMILY_MODELS)
async def test_draft_mode_applies_preset(user, resource_data, base_model):
	resource_data.return_value = [CHECKPOINT, LORA, DRAFT_LORA]

	job = await _prepare(_payload(base_model=base_model, draft=True, quantity=3), user)

	assert job.draft is True
	assert job.quantity == 4
	assert job.steps == 8
	assert job.cfg_scale == 1
	assert job.scheduler == "Euler"
	assert job.batch_size == 4
	assert SDXL_DRAFT_ID in resource_data.await_args.args[0]
	assert "urn:air:sdxl:lora:civitai:350000@391999" in job.additional_networks


@pytest.mark.asyncio
@pytest.mark.parametrize("base_model", SDXL_FAMILY_MODELS)
async def test_draft_mode_requires_draft_resource(user, resource_data, base_model):
	with pytest.raises(HTTPException) as exc:
		await _prepare(_payload(base_model=base_model, draft=True), user)
	assert exc.value.detail == f"Draft mode is currently disabled for {base_model} models"


@pytest.mark.asyncio
async def test_checkpoint_required(user, resource_data):
	resource_data.return_value = [LORA]
	with pytest.raises(HTTPException) as exc:
		await _prepare(_payload(), user)
	assert exc.value.detail == "A checkpoint is required to make a generation request"


@pytest.mark.asyncio
async def test_resources_without_air_are_dropped(user, resource_data):
	unknown = _resource(1, 11, ModelType.CHECKPOINT, base_model="Mystery 9")
	resource_data.return_value = [unknown, LORA]
	with pytest.raises(HTTPException) as exc:
		await _prepare(_payload(), user)
	assert exc.value.detail == "A checkpoint is required to make a generation request"


@pytest.mark.asyncio
async def test_uncovered_resources_are_listed(user, resource_data):
	resource_data.return_value = [CHECKPOINT, _resource(2, 12, ModelType.LORA, covered=False)]
	with pytest.raises(HTTPException) as exc:
		await _prepare(_payload(), user)
	assert exc.value.detail == f"Some of your resources are not available for generation: {LORA_AIR}"


@pytest.mark.asyncio
async def test_flagged_prompt_is_rejected(user, resource_data):
	moderation = StubModeration(result=ModerationResult(flagged=True, categories=("violence", "hate")))
	with pytest.raises(HTTPException) as exc:
		await _prepare(_payload(), user, moderation)
	assert exc.value.status_code == 400
	assert exc.value.detail == "Your prompt was flagged for: violence, hate"


@pytest.mark.asyncio
async def test_moderation_outage_does_not_block(user, resource_data, caplog):
	moderation = StubModeration(error=ModerationUnavailable("timeout"))
	with caplog.at_level("ERROR", logger="atelier.domain.generation.text_to_image"):
		job = await _prepare(_payload(), user, moderation)
	assert job.model == CHECKPOINT_AIR
	assert any(record.getMessage() == "external-moderation-error" for record in caplog.records)


@pytest.mark.asyncio
async def test_nsfw_prompt_gets_minor_fallback(user, resource_data):
	job = await _prepare(_payload(prompt="nude woman on a beach", negative_prompt=None), user)

	assert job.nsfw is True
	assert job.prompt == "safe_pos, nude woman on a beach"
	assert job.negative_prompt == "safe_neg"
	assert "@civitai/250708" in job.additional_networks
	assert "@civitai/250712" in job.additional_networks
	assert "@civitai/106916" not in job.additional_networks


@pytest.mark.asyncio
async def test_poi_forces_sfw(user, resource_data):
	resource_data.return_value = [CHECKPOINT, _resource(2, 12, ModelType.LORA, poi=True)]

	job = await _prepare(_payload(prompt="nude portrait", nsfw=True, negative_prompt=None), user)

	assert job.nsfw is False
	assert job.negative_prompt == "safe_neg, civit_nsfw"
	assert job.prompt == "safe_pos, nude portrait"


@pytest.mark.asyncio
async def test_minor_words_force_sfw(user, resource_data):
	job = await _prepare(_payload(prompt="kids playing in a park", nsfw=True), user)
	assert job.nsfw is False
	assert "@civitai/106916" in job.additional_networks


@pytest.mark.asyncio
async def test_safety_injection_can_be_switched_off(user, resource_data):
	await set_generation_status(GenerationStatusUpdate(sfw_embed=False, minor_fallback=False))
	job = await _prepare(_payload(prompt="nude study"), user)
	assert set(job.additional_networks) == {LORA_AIR}
	assert job.negative_prompt == "blurry"


@pytest.mark.asyncio
async def test_sd1_keeps_clip_skip_and_checks_aspect_ratio(user, resource_data):
	sd1_checkpoint = _resource(1, 11, ModelType.CHECKPOINT, base_model="SD 1.5")
	resource_data.return_value = [sd1_checkpoint]

	job = await _prepare(_payload(base_model="SD1", aspect_ratio=2, resources=[{"id": 1}]), user)
	assert job.clip_skip == 1
	assert (job.width, job.height) == (512, 768)

	with pytest.raises(HTTPException) as exc:
		await _prepare(_payload(base_model="SD1", aspect_ratio=7, resources=[{"id": 1}]), user)
	assert exc.value.detail == "Invalid aspect ratio"


@pytest.mark.asyncio
async def test_text_to_image_dispatches_job(user, resource_data):
	orchestrator = AsyncMock()
	orchestrator.submit.side_effect = lambda job, user: TextToImageResponse(
		workflow_id="wf-1", status="unassigned", job=job
	)

	response = await text_to_image(_payload(), user, moderation=StubModeration(), orchestrator=orchestrator)

	assert response.workflow_id == "wf-1"
	assert response.job.base_model is BaseModelSetType.SDXL
	orchestrator.submit.assert_awaited_once()
