"""FastAPI application entrypoint."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from atelier.api import club_memberships, generation, home_blocks, ops
from atelier.api.errors import install_error_handlers
from atelier.infra import postgres
from atelier.infra.redis import redis_client
from atelier.obs import init as obs_init
from atelier.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
	await postgres.init_pool()
	try:
		yield
	finally:
		await postgres.close_pool()
		await redis_client.aclose()


app = FastAPI(title="Atelier API", lifespan=lifespan)
install_error_handlers(app)

allow_origins = list(settings.allowed_origins())
if not allow_origins:
	allow_origins = ["http://localhost:3000"] if settings.is_dev() else []

# Starlette disallows wildcard '*' with allow_credentials=True.
if "*" in allow_origins:
	allow_origins = ["http://localhost:3000", "http://127.0.0.1:3000"] if settings.is_dev() else []

app.add_middleware(
	CORSMiddleware,
	allow_origins=allow_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

obs_init(app)

app.include_router(ops.router, tags=["ops"])
app.include_router(club_memberships.router)
app.include_router(home_blocks.router)
app.include_router(generation.router)
