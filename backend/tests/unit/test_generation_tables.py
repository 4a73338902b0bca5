import pytest

from atelier.domain.generation.air import embedding_network_key, stringify_air
from atelier.domain.generation.config import GenerationConfig, load_generation_config
from atelier.domain.generation.constants import BaseModelSetType, ModelType, base_model_set_for
from atelier.domain.generation.status import (
	GenerationStatusUpdate,
	TierLimits,
	get_generation_status,
	set_generation_status,
)


@pytest.mark.parametrize(
	"base_model,type,expected",
	[
		("SDXL 1.0", ModelType.LORA, "urn:air:sdxl:lora:civitai:10@20"),
		("Pony", "Checkpoint", "urn:air:pony:checkpoint:civitai:10@20"),
		("SD 1.5", ModelType.TEXTUAL_INVERSION, "urn:air:sd1:embedding:civitai:10@20"),
		("SDXL Distilled", ModelType.LOCON, "urn:air:sdxl:lycoris:civitai:10@20"),
	],
)
def test_stringify_air(base_model, type, expected):
	assert stringify_air(base_model=base_model, type=type, model_id=10, id=20) == expected


def test_stringify_air_unknown_parts():
	assert stringify_air(base_model="Flux.1 D", type=ModelType.LORA, model_id=1, id=2) is None
	assert stringify_air(base_model="SDXL 1.0", type="Sculpture", model_id=1, id=2) is None


def test_stringify_air_custom_source():
	air = stringify_air(base_model="SDXL 1.0", type=ModelType.VAE, model_id=1, id=2, source="huggingface")
	assert air == "urn:air:sdxl:vae:huggingface:1@2"


def test_embedding_network_key():
	assert embedding_network_key(106916) == "@civitai/106916"


def test_base_model_set_lookup():
	assert base_model_set_for("SDXL Lightning") is BaseModelSetType.SDXL
	assert base_model_set_for("SD1") is BaseModelSetType.SD1
	assert base_model_set_for("Nope") is None


def test_config_defaults_when_file_missing(tmp_path):
	config = load_generation_config(tmp_path / "missing.yml")
	assert config == GenerationConfig.default()


def test_config_overrides_from_yaml(tmp_path):
	path = tmp_path / "generation.yml"
	path.write_text(
		"""
base_models:
  SD2:
    aspect_ratios:
      - {label: Square, width: 768, height: 768}
  Unknown:
    aspect_ratios: []
draft_mode:
  sd1: {steps: 4, cfg_scale: 1.5, sampler: LCM, resource_id: 1}
schedulers:
  "Euler a": EulerAncestral
""",
		encoding="utf-8",
	)
	config = load_generation_config(path)

	sd2 = config.for_base_model(BaseModelSetType.SD2)
	assert [(r.width, r.height) for r in sd2.aspect_ratios] == [(768, 768)]
	assert ModelType.LORA in sd2.additional_resource_types
	assert config.draft_settings(BaseModelSetType.SD1).steps == 4
	assert config.draft_settings(BaseModelSetType.PONY).resource_id == 391999
	assert config.scheduler_for("Euler a") == "EulerAncestral"
	assert config.scheduler_for("Something") == "Something"


def test_unconfigured_base_model_falls_back_to_sd1():
	config = GenerationConfig.default()
	assert config.for_base_model(BaseModelSetType.ODOR) == config.for_base_model(BaseModelSetType.SD1)


@pytest.mark.asyncio
async def test_status_defaults_come_from_config():
	status = await get_generation_status()
	assert status.available is True
	assert status.limits_for(None) == TierLimits(quantity=4, queue=4, steps=50, resources=9)
	assert status.limits_for("founder").quantity == 8


@pytest.mark.asyncio
async def test_status_override_merges_limits(fake_redis):
	await set_generation_status(
		GenerationStatusUpdate(message="maintenance", limits={"free": TierLimits(quantity=2, steps=20, resources=3)})
	)
	await set_generation_status(GenerationStatusUpdate(available=False))

	status = await get_generation_status()
	assert status.available is False
	assert status.message == "maintenance"
	assert status.limits_for("free").quantity == 2
	assert status.limits_for("founder").quantity == 8
	assert await fake_redis.get("generation:status") is not None
