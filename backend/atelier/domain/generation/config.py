"""Generation configuration tables loaded from YAML."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml

from atelier.domain.generation.constants import SDXL_FAMILY, BaseModelSetType, ModelType
from atelier.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AspectRatio:
	label: str
	width: int
	height: int


@dataclass(frozen=True)
class BaseModelGenerationConfig:
	aspect_ratios: tuple[AspectRatio, ...]
	additional_resource_types: tuple[ModelType, ...]


@dataclass(frozen=True)
class DraftModeSettings:
	"""Fixed sampling preset and the acceleration resource used for draft generations."""

	steps: int
	cfg_scale: float
	sampler: str
	resource_id: int


_SD1_RATIOS = (
	AspectRatio("Square", 512, 512),
	AspectRatio("Landscape", 768, 512),
	AspectRatio("Portrait", 512, 768),
)
_SDXL_RATIOS = (
	AspectRatio("Square", 1024, 1024),
	AspectRatio("Landscape", 1216, 832),
	AspectRatio("Portrait", 832, 1216),
)
_ADDITIONAL = (ModelType.LORA, ModelType.TEXTUAL_INVERSION, ModelType.LOCON)


@dataclass(frozen=True)
class GenerationConfig:
	base_models: Mapping[BaseModelSetType, BaseModelGenerationConfig]
	draft_mode: Mapping[str, DraftModeSettings]
	default_status: Mapping[str, Any]
	schedulers: Mapping[str, str] = field(default_factory=dict)

	@staticmethod
	def default() -> "GenerationConfig":
		sdxl = BaseModelGenerationConfig(aspect_ratios=_SDXL_RATIOS, additional_resource_types=_ADDITIONAL)
		return GenerationConfig(
			base_models={
				BaseModelSetType.SD1: BaseModelGenerationConfig(
					aspect_ratios=_SD1_RATIOS, additional_resource_types=_ADDITIONAL
				),
				BaseModelSetType.SDXL: sdxl,
				BaseModelSetType.PONY: sdxl,
				BaseModelSetType.SDXL_DISTILLED: sdxl,
			},
			draft_mode={
				"sdxl": DraftModeSettings(steps=8, cfg_scale=1, sampler="Euler", resource_id=391999),
				"sd1": DraftModeSettings(steps=6, cfg_scale=1, sampler="LCM", resource_id=424706),
			},
			default_status={
				"available": True,
				"message": None,
				"sfw_embed": True,
				"minor_fallback": True,
				"limits": {
					"free": {"quantity": 4, "queue": 4, "steps": 50, "resources": 9},
				},
			},
			schedulers={"Euler a": "EulerA", "Euler": "Euler", "LCM": "LCM", "DDIM": "DDIM"},
		)

	def for_base_model(self, base_model: BaseModelSetType) -> BaseModelGenerationConfig:
		"""Config for a base model set; sets without their own entry use SD1's."""
		config = self.base_models.get(base_model) or self.base_models.get(BaseModelSetType.SD1)
		if config is None:
			raise KeyError(f"no generation config for {base_model.value}")
		return config

	def draft_settings(self, base_model: BaseModelSetType) -> DraftModeSettings:
		return self.draft_mode["sdxl" if base_model in SDXL_FAMILY else "sd1"]

	def scheduler_for(self, sampler: str) -> str:
		return self.schedulers.get(sampler, sampler)

	@staticmethod
	def from_mapping(config: Mapping[str, Any]) -> "GenerationConfig":
		base = GenerationConfig.default()

		base_models: dict[BaseModelSetType, BaseModelGenerationConfig] = dict(base.base_models)
		for name, model_cfg in (config.get("base_models") or {}).items():
			try:
				set_type = BaseModelSetType(name)
			except ValueError:
				logger.warning("generation config: unknown base model set %s", name)
				continue
			if not isinstance(model_cfg, Mapping):
				continue
			fallback = base_models.get(set_type) or base_models[BaseModelSetType.SD1]
			ratios = model_cfg.get("aspect_ratios")
			types = model_cfg.get("additional_resource_types")
			base_models[set_type] = BaseModelGenerationConfig(
				aspect_ratios=tuple(
					AspectRatio(label=str(r.get("label", "")), width=int(r["width"]), height=int(r["height"]))
					for r in ratios
				)
				if ratios
				else fallback.aspect_ratios,
				additional_resource_types=tuple(ModelType(t) for t in types)
				if types
				else fallback.additional_resource_types,
			)

		draft_mode = dict(base.draft_mode)
		for key, draft_cfg in (config.get("draft_mode") or {}).items():
			draft_mode[str(key)] = DraftModeSettings(
				steps=int(draft_cfg["steps"]),
				cfg_scale=float(draft_cfg["cfg_scale"]),
				sampler=str(draft_cfg["sampler"]),
				resource_id=int(draft_cfg["resource_id"]),
			)

		default_status = dict(base.default_status)
		default_status.update(config.get("default_status") or {})

		schedulers = dict(base.schedulers)
		schedulers.update({str(k): str(v) for k, v in (config.get("schedulers") or {}).items()})

		return GenerationConfig(
			base_models=base_models,
			draft_mode=draft_mode,
			default_status=default_status,
			schedulers=schedulers,
		)


def load_generation_config(path: str | Path) -> GenerationConfig:
	"""Load generation tables from a YAML file, falling back to defaults."""
	try:
		text = Path(path).read_text(encoding="utf-8")
	except FileNotFoundError:
		logger.warning("generation config file missing at %s; using defaults", path)
		return GenerationConfig.default()
	data = yaml.safe_load(text)
	if not isinstance(data, Mapping):
		logger.warning("generation config file invalid; falling back to defaults")
		return GenerationConfig.default()
	return GenerationConfig.from_mapping(data)


@lru_cache(maxsize=1)
def get_generation_config() -> GenerationConfig:
	return load_generation_config(settings.generation_config_path)
