"""Redis-backed JSON caching with per-key singleflight."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable

from atelier.infra.redis import RedisProxy, redis_client

CacheBuilder = Callable[[], Awaitable[Any]]


class JsonCache:
	"""Thin wrapper over Redis storing JSON documents under a namespace."""

	def __init__(self, namespace: str, redis: RedisProxy | None = None) -> None:
		self.redis = redis or redis_client
		self.namespace = namespace
		self._locks: dict[str, asyncio.Lock] = {}

	def _key(self, suffix: str) -> str:
		return f"{self.namespace}{suffix}"

	def _lock(self, suffix: str) -> asyncio.Lock:
		if suffix not in self._locks:
			self._locks[suffix] = asyncio.Lock()
		return self._locks[suffix]

	async def get(self, suffix: str) -> Any | None:
		raw = await self.redis.get(self._key(suffix))
		if not raw:
			return None
		if isinstance(raw, bytes):
			raw = raw.decode("utf-8")
		try:
			return json.loads(raw)
		except json.JSONDecodeError:
			return None

	async def set(self, suffix: str, value: Any, *, ttl: int | None = None) -> None:
		payload = json.dumps(value, default=str)
		await self.redis.set(self._key(suffix), payload, ex=ttl)

	async def delete(self, suffix: str) -> None:
		await self.redis.delete(self._key(suffix))

	async def get_or_build(self, suffix: str, *, ttl: int, builder: CacheBuilder) -> Any:
		cached = await self.get(suffix)
		if cached is not None:
			return cached
		async with self._lock(suffix):
			cached = await self.get(suffix)
			if cached is not None:
				return cached
			value = await builder()
			await self.set(suffix, value, ttl=ttl)
			return value
