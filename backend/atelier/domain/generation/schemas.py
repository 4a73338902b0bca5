"""Pydantic schemas for text-to-image requests and prepared jobs."""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from atelier.domain.generation.constants import MAX_RESOURCES, BaseModelSetType, ModelType


class TextToImageParams(BaseModel):
	prompt: str
	negative_prompt: Optional[str] = None
	cfg_scale: float
	sampler: str
	seed: int
	clip_skip: int
	steps: int
	quantity: int
	nsfw: Optional[bool] = None
	draft: Optional[bool] = None
	# index into the base model's aspect ratio table; numeric strings are accepted
	aspect_ratio: int
	base_model: BaseModelSetType


class TextToImageResource(BaseModel):
	id: int
	strength: float = 1
	trigger_word: Optional[str] = None


class TextToImageInput(BaseModel):
	params: TextToImageParams
	resources: List[TextToImageResource]

	@field_validator("resources")
	@classmethod
	def _resource_count(cls, value: List[TextToImageResource]) -> List[TextToImageResource]:
		if len(value) < 1:
			raise ValueError("You must select at least one resource")
		if len(value) > MAX_RESOURCES:
			raise ValueError("Too many resources provided")
		return value


class AdditionalNetwork(BaseModel):
	type: ModelType
	strength: Optional[float] = None
	trigger_word: Optional[str] = None


class TextToImageJob(BaseModel):
	"""A normalized, safety-checked request ready for the generation backend."""

	base_model: BaseModelSetType
	model: str
	additional_networks: Dict[str, AdditionalNetwork] = Field(default_factory=dict)
	scheduler: str
	steps: int
	cfg_scale: float
	clip_skip: int
	seed: int
	width: int
	height: int
	prompt: str
	negative_prompt: str
	quantity: int
	batch_size: int = 1
	nsfw: bool
	draft: bool = False


class TextToImageResponse(BaseModel):
	workflow_id: str
	status: str
	job: TextToImageJob
