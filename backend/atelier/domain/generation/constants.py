"""Static tables for image generation: model types, base model sets and safety embeddings."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional


class ModelType(str, Enum):
	CHECKPOINT = "Checkpoint"
	TEXTUAL_INVERSION = "TextualInversion"
	HYPERNETWORK = "Hypernetwork"
	AESTHETIC_GRADIENT = "AestheticGradient"
	LORA = "LORA"
	LOCON = "LoCon"
	DORA = "DoRA"
	CONTROLNET = "Controlnet"
	UPSCALER = "Upscaler"
	MOTION_MODULE = "MotionModule"
	VAE = "VAE"
	POSES = "Poses"
	WILDCARDS = "Wildcards"
	WORKFLOWS = "Workflows"
	OTHER = "Other"


class BaseModelSetType(str, Enum):
	SD1 = "SD1"
	SD2 = "SD2"
	SDXL = "SDXL"
	SDXL_DISTILLED = "SDXLDistilled"
	SCASCADE = "SCascade"
	PONY = "Pony"
	ODOR = "ODOR"


BASE_MODEL_SETS: Mapping[BaseModelSetType, tuple[str, ...]] = {
	BaseModelSetType.SD1: ("SD 1.4", "SD 1.5", "SD 1.5 LCM", "SD 1.5 Hyper"),
	BaseModelSetType.SD2: ("SD 2.0", "SD 2.0 768", "SD 2.1", "SD 2.1 768", "SD 2.1 Unclip"),
	BaseModelSetType.SDXL: (
		"SDXL 0.9",
		"SDXL 1.0",
		"SDXL 1.0 LCM",
		"SDXL Turbo",
		"SDXL Lightning",
		"SDXL Hyper",
	),
	BaseModelSetType.SDXL_DISTILLED: ("SDXL Distilled",),
	BaseModelSetType.SCASCADE: ("Stable Cascade",),
	BaseModelSetType.PONY: ("Pony",),
	BaseModelSetType.ODOR: ("Odor",),
}

# AIR ecosystem segment per base model set
ECOSYSTEMS: Mapping[BaseModelSetType, str] = {
	BaseModelSetType.SD1: "sd1",
	BaseModelSetType.SD2: "sd2",
	BaseModelSetType.SDXL: "sdxl",
	BaseModelSetType.SDXL_DISTILLED: "sdxl",
	BaseModelSetType.SCASCADE: "scascade",
	BaseModelSetType.PONY: "pony",
	BaseModelSetType.ODOR: "odor",
}

# AIR type segment per model type
AIR_MODEL_TYPES: Mapping[ModelType, str] = {
	ModelType.CHECKPOINT: "checkpoint",
	ModelType.TEXTUAL_INVERSION: "embedding",
	ModelType.HYPERNETWORK: "hypernet",
	ModelType.AESTHETIC_GRADIENT: "ag",
	ModelType.LORA: "lora",
	ModelType.LOCON: "lycoris",
	ModelType.DORA: "dora",
	ModelType.CONTROLNET: "controlnet",
	ModelType.UPSCALER: "upscaler",
	ModelType.MOTION_MODULE: "motion",
	ModelType.VAE: "vae",
	ModelType.POSES: "poses",
	ModelType.WILDCARDS: "wildcards",
	ModelType.WORKFLOWS: "workflows",
	ModelType.OTHER: "other",
}

SDXL_FAMILY = frozenset({BaseModelSetType.SDXL, BaseModelSetType.PONY, BaseModelSetType.SDXL_DISTILLED})

SDXL_CLIP_SKIP = 2
DRAFT_QUANTITY_MULTIPLE = 4
DRAFT_BATCH_SIZE = 4
MAX_RESOURCES = 10


def base_model_set_for(base_model: str) -> Optional[BaseModelSetType]:
	"""Map a concrete base model name (e.g. "SDXL 1.0") to its set."""
	for set_type, names in BASE_MODEL_SETS.items():
		if base_model in names:
			return set_type
	try:
		return BaseModelSetType(base_model)
	except ValueError:
		return None


@dataclass(frozen=True)
class SafetyEmbedding:
	id: int
	trigger_word: str


# When retiring an embedding here, keep its trigger word recognisable to prompt
# clean-up on the client so old generations still display without it.
SAFE_NEGATIVES: tuple[SafetyEmbedding, ...] = (SafetyEmbedding(id=106916, trigger_word="civit_nsfw"),)
MINOR_NEGATIVES: tuple[SafetyEmbedding, ...] = (SafetyEmbedding(id=250712, trigger_word="safe_neg"),)
MINOR_POSITIVES: tuple[SafetyEmbedding, ...] = (SafetyEmbedding(id=250708, trigger_word="safe_pos"),)
