"""Word-list audits of generation prompts (nsfw, minors, real people)."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from atelier.settings import settings

logger = logging.getLogger(__name__)

_DEFAULT_LISTS: Mapping[str, tuple[str, ...]] = {
	"nsfw": ("nsfw", "nude", "naked", "sex", "porn", "hentai", "explicit"),
	"minor": ("child", "kid", "toddler", "underage", "loli", "shota", "preteen"),
	"poi": (),
}


def _compile(words: Iterable[str]) -> re.Pattern[str] | None:
	terms = sorted({w.strip().lower() for w in words if w and w.strip()}, key=len, reverse=True)
	if not terms:
		return None
	alternation = "|".join(r"\s+".join(re.escape(part) for part in term.split()) for term in terms)
	return re.compile(rf"(?<![a-z0-9])(?:{alternation})s?(?![a-z0-9])", re.IGNORECASE)


@dataclass(frozen=True)
class PromptAuditor:
	nsfw: re.Pattern[str] | None
	minor: re.Pattern[str] | None
	poi: re.Pattern[str] | None

	@staticmethod
	def from_mapping(config: Mapping[str, Any]) -> "PromptAuditor":
		def _words(key: str) -> Iterable[str]:
			value = config.get(key)
			if value is None:
				return _DEFAULT_LISTS[key]
			return [str(item) for item in value]

		return PromptAuditor(nsfw=_compile(_words("nsfw")), minor=_compile(_words("minor")), poi=_compile(_words("poi")))

	@staticmethod
	def _matches(pattern: re.Pattern[str] | None, prompt: str | None) -> bool:
		if pattern is None or not prompt:
			return False
		# weights and separators like "(nude:1.2)" or "naked_body" still count
		normalized = re.sub(r"[_()\[\]{}:]", " ", prompt)
		return pattern.search(normalized) is not None

	def includes_nsfw(self, prompt: str | None) -> bool:
		return self._matches(self.nsfw, prompt)

	def includes_minor(self, prompt: str | None) -> bool:
		return self._matches(self.minor, prompt)

	def includes_poi(self, prompt: str | None) -> bool:
		return self._matches(self.poi, prompt)


def load_prompt_auditor(path: str | Path) -> PromptAuditor:
	try:
		text = Path(path).read_text(encoding="utf-8")
	except FileNotFoundError:
		logger.warning("prompt audit file missing at %s; using defaults", path)
		return PromptAuditor.from_mapping({})
	data = yaml.safe_load(text)
	if not isinstance(data, Mapping):
		logger.warning("prompt audit file invalid; falling back to defaults")
		data = {}
	return PromptAuditor.from_mapping(data)


@lru_cache(maxsize=1)
def get_prompt_auditor() -> PromptAuditor:
	return load_prompt_auditor(settings.prompt_audit_config_path)


def includes_nsfw(prompt: str | None) -> bool:
	return get_prompt_auditor().includes_nsfw(prompt)


def includes_minor(prompt: str | None) -> bool:
	return get_prompt_auditor().includes_minor(prompt)


def includes_poi(prompt: str | None) -> bool:
	return get_prompt_auditor().includes_poi(prompt)
