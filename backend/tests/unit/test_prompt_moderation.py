import json

import httpx
import pytest

from atelier.moderation import ExternalModerationClient, ModerationUnavailable
from atelier.moderation.prompt_audit import PromptAuditor, get_prompt_auditor, load_prompt_auditor


@pytest.mark.parametrize(
	"prompt,expected",
	[
		("a nude figure", True),
		("(naked:1.2), beach", True),
		("NSFW_art", True),
		("a denuded hillside", False),
		("sunset over the sea", False),
		("", False),
	],
)
def test_includes_nsfw(prompt, expected):
	assert get_prompt_auditor().includes_nsfw(prompt) is expected


def test_minor_and_poi_phrases():
	auditor = get_prompt_auditor()
	assert auditor.includes_minor("two little  girls at school")
	assert not auditor.includes_minor("kidney beans")
	assert auditor.includes_poi("portrait of Taylor Swift")


def test_auditor_from_yaml(tmp_path):
	path = tmp_path / "audit.yml"
	path.write_text("nsfw: [spicy]\npoi: []\n", encoding="utf-8")
	auditor = load_prompt_auditor(path)
	assert auditor.includes_nsfw("spicy food")
	assert not auditor.includes_nsfw("nude")
	assert not auditor.includes_poi("anyone")
	# minor falls back to the built-in list
	assert auditor.includes_minor("a toddler")


def test_auditor_missing_file_uses_defaults(tmp_path):
	auditor = load_prompt_auditor(tmp_path / "nope.yml")
	assert auditor == PromptAuditor.from_mapping({})


def _client(handler, **kwargs):
	return ExternalModerationClient(
		endpoint="https://moderation.test/v1/moderations",
		token="secret",
		transport=httpx.MockTransport(handler),
		**kwargs,
	)


@pytest.mark.asyncio
async def test_moderation_client_parses_flagged_result():
	seen = {}

	def handler(request: httpx.Request) -> httpx.Response:
		seen["auth"] = request.headers.get("Authorization")
		seen["body"] = json.loads(request.content)
		return httpx.Response(
			200,
			json={"results": [{"flagged": True, "categories": {"violence": True, "hate": False, "sexual": True}}]},
		)

	result = await _client(handler).moderate_prompt("some prompt")

	assert result.flagged is True
	assert result.categories == ("violence", "sexual")
	assert seen == {"auth": "Bearer secret", "body": {"input": "some prompt"}}


@pytest.mark.asyncio
async def test_moderation_client_errors_are_unavailable():
	def handler(request: httpx.Request) -> httpx.Response:
		return httpx.Response(503, json={"error": "down"})

	with pytest.raises(ModerationUnavailable):
		await _client(handler).moderate_prompt("prompt")


@pytest.mark.asyncio
async def test_moderation_client_rejects_malformed_payload():
	def handler(request: httpx.Request) -> httpx.Response:
		return httpx.Response(200, json={"ok": True})

	with pytest.raises(ModerationUnavailable):
		await _client(handler).moderate_prompt("prompt")


@pytest.mark.asyncio
async def test_moderation_client_without_endpoint_passes():
	result = await ExternalModerationClient().moderate_prompt("anything")
	assert result.flagged is False
