from unittest.mock import AsyncMock, patch

import pytest

from atelier.domain.generation.constants import ModelType
from atelier.domain.generation.resources import GenerationCoverage, GenerationResource, ResourceModel
from atelier.domain.generation.schemas import TextToImageResponse

MODERATOR = {"X-User-Id": "1", "X-User-Roles": "moderator"}
MEMBER = {"X-User-Id": "2"}


def _payload():
	return {
		"params": {
			"prompt": "a lighthouse at dusk",
			"cfg_scale": 7,
			"sampler": "DPM++ 2M Karras",
			"seed": 99,
			"clip_skip": 1,
			"steps": 25,
			"quantity": 1,
			"aspect_ratio": 0,
			"base_model": "SDXL",
		},
		"resources": [{"id": 1}],
	}


CHECKPOINT = GenerationResource(
	id=1,
	name="v1",
	base_model="SDXL 1.0",
	model=ResourceModel(id=11, name="m11", type=ModelType.CHECKPOINT),
	generation_coverage=GenerationCoverage(covered=True),
)


@pytest.mark.asyncio
async def test_status_update_requires_moderator(api_client):
	resp = await api_client.put("/generation/status", json={"available": False}, headers=MEMBER)
	assert resp.status_code == 403

	resp = await api_client.put(
		"/generation/status", json={"available": False, "message": "paused"}, headers=MODERATOR
	)
	assert resp.status_code == 200
	assert resp.json()["available"] is False

	resp = await api_client.get("/generation/status")
	assert resp.json()["message"] == "paused"


@pytest.mark.asyncio
async def test_text_to_image_requires_auth(api_client):
	resp = await api_client.post("/generation/text-to-image", json=_payload())
	assert resp.status_code == 401


@pytest.mark.asyncio
async def test_text_to_image_rejects_unknown_base_model(api_client):
	payload = _payload()
	payload["params"]["base_model"] = "Flux"
	resp = await api_client.post("/generation/text-to-image", json=payload, headers=MEMBER)
	assert resp.status_code == 400


@pytest.mark.asyncio
@pytest.mark.parametrize(
	"resources,message",
	[
		([], "You must select at least one resource"),
		([{"id": i} for i in range(1, 12)], "Too many resources provided"),
	],
)
async def test_text_to_image_resource_count_messages(api_client, resources, message):
	payload = _payload()
	payload["resources"] = resources
	resp = await api_client.post("/generation/text-to-image", json=payload, headers=MEMBER)
	assert resp.status_code == 400
	assert resp.json()["detail"] == message
	assert "request_id" in resp.json()


@pytest.mark.asyncio
async def test_text_to_image_dispatches(api_client):
	orchestrator = AsyncMock()
	orchestrator.submit.side_effect = lambda job, user: TextToImageResponse(workflow_id="wf-2", status="queued", job=job)

	with patch(
		"atelier.domain.generation.text_to_image.get_resource_data", new=AsyncMock(return_value=[CHECKPOINT])
	), patch("atelier.domain.generation.text_to_image.get_orchestrator_client", return_value=orchestrator):
		resp = await api_client.post("/generation/text-to-image", json=_payload(), headers=MEMBER)

	assert resp.status_code == 202
	body = resp.json()
	assert body["workflow_id"] == "wf-2"
	assert body["job"]["scheduler"] == "DPM2MKarras"
	assert body["job"]["clip_skip"] == 2
	assert body["job"]["negative_prompt"] == "civit_nsfw"


@pytest.mark.asyncio
async def test_text_to_image_without_backend(api_client):
	with patch("atelier.domain.generation.text_to_image.get_resource_data", new=AsyncMock(return_value=[CHECKPOINT])):
		resp = await api_client.post("/generation/text-to-image", json=_payload(), headers=MEMBER)

	assert resp.status_code == 503
	assert resp.json()["detail"] == "generation_backend_not_configured"


@pytest.mark.asyncio
async def test_disabled_generation_is_bad_request(api_client):
	await api_client.put("/generation/status", json={"available": False}, headers=MODERATOR)
	resp = await api_client.post("/generation/text-to-image", json=_payload(), headers=MEMBER)
	assert resp.status_code == 400
	assert resp.json()["detail"] == "Generation is currently disabled"
