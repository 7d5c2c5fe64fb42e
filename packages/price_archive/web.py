"""HTTP interface for ``price_archive`` (FastAPI).

Endpoints
---------
- ``POST /api/v0/prices?type=zip|tar``: upload an archive (raw body or the
  ``file`` part of a multipart form, which must declare ``Content-Length``);
  responds with the upload summary.
- ``GET /api/v0/prices?start=&end=&min=&max=&type=``: download matching
  records as ``data.zip`` (or ``data.tar``).
- ``GET /health``: liveness probe.

Library errors map to a JSON body ``{"error": <kind>, "detail": <message>}``.
No partial upload summary is ever returned.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

from db.client import create_db_engine, make_session_factory

from .api import export_archive, ingest_archive, parse_export_filter
from .config import Settings
from .errors import (
    InvalidRequestError,
    LimitExceededError,
    PersistenceError,
    PriceArchiveError,
)
from .logging_setup import get_logger
from .models import ArchiveKind

logger = get_logger("price_archive.web")

_STATUS_BY_ERROR: dict[type[PriceArchiveError], int] = {
    LimitExceededError: 413,
    PersistenceError: 503,
}

_MEDIA_TYPES = {
    ArchiveKind.ZIP: "application/zip",
    ArchiveKind.TAR: "application/x-tar",
}


def _status_for(exc: PriceArchiveError) -> int:
    for cls in type(exc).__mro__:
        status = _STATUS_BY_ERROR.get(cls)  # type: ignore[arg-type]
        if status is not None:
            return status
    return 400


def _archive_kind(raw: str | None) -> ArchiveKind:
    value = (raw or "").strip().lower() or ArchiveKind.ZIP.value
    try:
        return ArchiveKind(value)
    except ValueError:
        raise InvalidRequestError(f"type must be zip or tar, got {raw!r}") from None


async def _read_upload(request: Request, limit: int) -> bytes:
    """Read the archive from the request without buffering more than ``limit``."""

    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise LimitExceededError(f"request body is {declared} bytes; limit is {limit}")

    content_type = request.headers.get("content-type", "")
    if content_type.startswith("multipart/form-data"):
        # The form parser spools the whole body before the ceiling below applies,
        # so only a declared (and already checked) length bounds it.
        if declared is None or not declared.isdigit():
            raise InvalidRequestError("multipart uploads must send Content-Length")
        async with request.form(max_files=1) as form:
            upload = form.get("file")
            if not isinstance(upload, UploadFile):
                raise InvalidRequestError("multipart upload must include a 'file' part")
            data = await upload.read(limit + 1)
    else:
        buf = bytearray()
        async for chunk in request.stream():
            buf.extend(chunk)
            if len(buf) > limit:
                break
        data = bytes(buf)

    if len(data) > limit:
        raise LimitExceededError(f"archive exceeds {limit} bytes")
    return data


def create_app(
    factory: sessionmaker[Session],
    settings: Settings,
    *,
    engine: Engine | None = None,
) -> FastAPI:
    """Build the FastAPI app around an explicit session factory.

    When ``engine`` is given it is disposed on application shutdown.
    """

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        yield
        if engine is not None:
            engine.dispose()

    app = FastAPI(title="Prices API", version="0.1.0", lifespan=lifespan)

    @app.exception_handler(PriceArchiveError)
    async def _handle_price_archive_error(
        request: Request, exc: PriceArchiveError
    ) -> JSONResponse:
        status = _status_for(exc)
        logger.warning("%s %s -> %d: %s", request.method, request.url.path, status, exc)
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.get("/health")
    def health() -> dict[str, bool]:
        return {"ok": True}

    @app.post("/api/v0/prices")
    async def upload_prices(
        request: Request,
        archive_type: Annotated[str | None, Query(alias="type")] = None,
    ) -> dict[str, Any]:
        kind = _archive_kind(archive_type)
        data = await _read_upload(request, settings.max_archive_bytes)
        summary = await run_in_threadpool(
            ingest_archive,
            factory,
            data,
            kind,
            max_archive_bytes=settings.max_archive_bytes,
            max_payload_bytes=settings.max_payload_bytes,
            max_rows=settings.max_rows,
        )
        return summary.model_dump()

    @app.get("/api/v0/prices")
    def download_prices(
        start: Annotated[str | None, Query()] = None,
        end: Annotated[str | None, Query()] = None,
        min_price: Annotated[str | None, Query(alias="min")] = None,
        max_price: Annotated[str | None, Query(alias="max")] = None,
        archive_type: Annotated[str | None, Query(alias="type")] = None,
    ) -> Response:
        kind = _archive_kind(archive_type)
        flt = parse_export_filter(start, end, min_price, max_price)
        body = export_archive(factory, flt, kind)
        return Response(
            content=body,
            media_type=_MEDIA_TYPES[kind],
            headers={"Content-Disposition": f'attachment; filename="data.{kind.value}"'},
        )

    return app


def create_app_from_settings(settings: Settings) -> FastAPI:
    """Build the app with an engine configured from ``settings``."""

    engine = create_db_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle,
    )
    return create_app(make_session_factory(engine), settings, engine=engine)


__all__ = [
    "create_app",
    "create_app_from_settings",
]
