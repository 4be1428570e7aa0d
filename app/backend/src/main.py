"""Entrypoint for the FastAPI application."""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv

# Load .env locally only; deployments inject env vars
env_path = os.path.join(os.path.dirname(__file__), "../.env")
if os.path.exists(env_path):
    load_dotenv(dotenv_path=os.path.abspath(env_path))

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .api import health, uploads
from .core.logging import configure_logging
from .services.s3 import await_ready


@asynccontextmanager
async def lifespan(_: FastAPI):
    # Config and bootstrap failures abort startup.
    await await_ready()
    yield


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Row Image Dashboard", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, prefix="/api")
    app.include_router(uploads.router, prefix="/api")

    return app


app = create_app()
