"""FastAPI application exposing the content pipeline over HTTP."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import Body, Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from tales_content import __version__
from tales_content.config import settings
from tales_content.errors import RetrievalError, TransientIOError, ValidationError
from tales_content.manager import ContentManager
from tales_content.models import strip_scheme

logger = logging.getLogger(__name__)


class UploadResponse(BaseModel):
    uri: str
    cid: str


class VerifyResponse(BaseModel):
    address: str
    valid: bool


class GatewaysResponse(BaseModel):
    gateways: list[str]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler: one shared HTTP client for all requests."""
    async with httpx.AsyncClient(timeout=settings.http_timeout_s) as http:
        try:
            app.state.manager = ContentManager.from_settings(settings, http)
        except ValueError as e:
            logger.warning("Content manager unavailable: %s", e)
            app.state.manager = None
        yield


app = FastAPI(
    title="Tales Content",
    description="Off-chain storage, pinning and retrieval for Tales posts",
    version=__version__,
    lifespan=lifespan,
)


def get_manager(request: Request) -> ContentManager:
    manager = getattr(request.app.state, "manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="content storage is not configured")
    return manager


@app.exception_handler(ValidationError)
async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(TransientIOError)
async def _transient_error(request: Request, exc: TransientIOError) -> JSONResponse:
    return JSONResponse(status_code=502, content={"detail": str(exc)})


@app.exception_handler(RetrievalError)
async def _retrieval_error(request: Request, exc: RetrievalError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "ok", "version": __version__}


@app.post("/content", status_code=201)
async def upload_content(
    payload: dict[str, Any] = Body(...),
    manager: ContentManager = Depends(get_manager),
) -> UploadResponse:
    uri = await manager.upload_content(payload)
    return UploadResponse(uri=uri, cid=strip_scheme(uri, settings.content_scheme))


@app.post("/media", status_code=201)
async def upload_media(
    request: Request,
    manager: ContentManager = Depends(get_manager),
) -> UploadResponse:
    media_type = request.headers.get("content-type", "application/octet-stream")
    uri = await manager.upload_media(await request.body(), media_type)
    return UploadResponse(uri=uri, cid=strip_scheme(uri, settings.content_scheme))


@app.get("/content/{address}")
async def retrieve_content(
    address: str,
    manager: ContentManager = Depends(get_manager),
) -> dict[str, Any]:
    record = await manager.retrieve_content(address)
    return record.to_document()


@app.get("/content/{address}/verify")
async def verify_content(
    address: str,
    manager: ContentManager = Depends(get_manager),
) -> VerifyResponse:
    return VerifyResponse(address=address, valid=await manager.verify_content(address))


@app.get("/content/{address}/gateways")
async def content_gateways(
    address: str,
    manager: ContentManager = Depends(get_manager),
) -> GatewaysResponse:
    return GatewaysResponse(gateways=manager.content_gateways(address))
