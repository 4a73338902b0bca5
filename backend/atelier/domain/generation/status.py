"""Generation availability and per-tier limits.

Operators toggle generation and tune limits at runtime by writing a JSON
document to Redis; it is merged over the configured defaults.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, Field

from atelier.domain.generation.config import get_generation_config
from atelier.infra.cache import JsonCache
from atelier.settings import settings

DEFAULT_TIER = "free"


class TierLimits(BaseModel):
	quantity: int = Field(..., ge=1)
	steps: int = Field(..., ge=1)
	resources: int = Field(..., ge=1)
	queue: int = Field(default=4, ge=1)


class GenerationStatus(BaseModel):
	available: bool = True
	message: Optional[str] = None
	limits: Dict[str, TierLimits]
	sfw_embed: bool = True
	minor_fallback: bool = True

	def limits_for(self, tier: Optional[str]) -> TierLimits:
		return self.limits.get(tier or DEFAULT_TIER) or self.limits[DEFAULT_TIER]


class GenerationStatusUpdate(BaseModel):
	available: Optional[bool] = None
	message: Optional[str] = None
	limits: Optional[Dict[str, TierLimits]] = None
	sfw_embed: Optional[bool] = None
	minor_fallback: Optional[bool] = None


_status_cache = JsonCache(namespace="")


def _merge(defaults: Mapping[str, Any], override: Mapping[str, Any]) -> Dict[str, Any]:
	merged = dict(defaults)
	for key, value in override.items():
		if key == "limits" and isinstance(value, Mapping):
			limits = {tier: dict(limit) for tier, limit in (merged.get("limits") or {}).items()}
			for tier, limit in value.items():
				limits[tier] = {**limits.get(tier, {}), **dict(limit)}
			merged["limits"] = limits
		else:
			merged[key] = value
	return merged


async def get_generation_status() -> GenerationStatus:
	defaults = get_generation_config().default_status
	stored = await _status_cache.get(settings.generation_status_key)
	if not isinstance(stored, Mapping):
		stored = {}
	return GenerationStatus.model_validate(_merge(defaults, stored))


async def set_generation_status(update: GenerationStatusUpdate) -> GenerationStatus:
	"""Persist the operator override and return the effective status."""
	stored = await _status_cache.get(settings.generation_status_key)
	if not isinstance(stored, Mapping):
		stored = {}
	changes = update.model_dump(exclude_unset=True)
	if changes.get("limits") is None:
		changes.pop("limits", None)
	merged_override = _merge(stored, changes)
	await _status_cache.set(settings.generation_status_key, merged_override)
	return GenerationStatus.model_validate(_merge(get_generation_config().default_status, merged_override))
