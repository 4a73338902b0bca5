"""Prompt moderation: local word audits and the external moderation service."""

from atelier.moderation.external import (
	ExternalModerationClient,
	ModerationResult,
	ModerationUnavailable,
	PromptModerationClient,
	get_moderation_client,
)
from atelier.moderation.prompt_audit import includes_minor, includes_nsfw, includes_poi

__all__ = [
	"ExternalModerationClient",
	"ModerationResult",
	"ModerationUnavailable",
	"PromptModerationClient",
	"get_moderation_client",
	"includes_minor",
	"includes_nsfw",
	"includes_poi",
]
