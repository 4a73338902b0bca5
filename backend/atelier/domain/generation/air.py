"""AIR (resource identifier) helpers.

An AIR encodes a resource's ecosystem, type, source, model and version, e.g.
``urn:air:sdxl:lora:civitai:328553@368189``.
"""

from __future__ import annotations

import re
from typing import Optional

from atelier.domain.generation.constants import AIR_MODEL_TYPES, ECOSYSTEMS, ModelType, base_model_set_for
from atelier.settings import settings

_SEGMENT = re.compile(r"^[a-zA-Z0-9_\-.]+$")


def stringify_air(
	*,
	base_model: str,
	type: ModelType | str,
	model_id: int,
	id: int,
	source: Optional[str] = None,
) -> Optional[str]:
	"""Build the AIR for a model version, or None when it cannot be expressed."""
	set_type = base_model_set_for(base_model)
	if set_type is None:
		return None
	ecosystem = ECOSYSTEMS.get(set_type)
	try:
		air_type = AIR_MODEL_TYPES.get(ModelType(type))
	except ValueError:
		return None
	source = source or settings.air_source
	if not ecosystem or not air_type or not _SEGMENT.match(source):
		return None
	return f"urn:air:{ecosystem}:{air_type}:{source}:{model_id}@{id}"


def embedding_network_key(embedding_id: int, *, source: Optional[str] = None) -> str:
	"""Key used for injected safety embeddings, which are addressed by version id only."""
	return f"@{source or settings.air_source}/{embedding_id}"
