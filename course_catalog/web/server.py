"""FastAPI application exposing the course catalog over HTTP."""

from __future__ import annotations

import contextvars
import dataclasses
import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, Form, Header, HTTPException, Request, UploadFile
from fastapi import status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse, Response
from pydantic import BaseModel, Field
from starlette.types import ASGIApp, Receive, Scope, Send

from ..services.catalog import Catalog
from ..services.content_store import LocalContentStore
from ..services.errors import (
    CatalogError,
    CycleDetected,
    Forbidden,
    NotFound,
    StoreFailure,
    ValidationError,
)
from ..services.events import emit_structured_event
from ..services.storage import ActorRecord, CategoryRecord, MaterialRecord
from ..services.uploads import UploadedFile


_REQUEST_ID_VAR: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "course_catalog_request_id",
    default=None,
)

_ERROR_STATUS: Dict[type, int] = {
    Forbidden: 403,
    NotFound: 404,
    ValidationError: 422,
    CycleDetected: 409,
    StoreFailure: 500,
}

REQUEST_ID_HEADER = "X-Request-Id"


def _new_correlation_id() -> str:
    return uuid.uuid4().hex


def _collect_correlation_context() -> Dict[str, str]:
    context: Dict[str, str] = {}
    request_id = _REQUEST_ID_VAR.get()
    if request_id:
        context["request_id"] = str(request_id)
    return context


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that injects correlation context into records."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple[Any, Dict[str, Any]]:  # type: ignore[override]
        extra: Dict[str, Any] = dict(self.extra)
        provided = kwargs.get("extra")
        if isinstance(provided, dict):
            extra.update(provided)
        for key, value in _collect_correlation_context().items():
            extra.setdefault(key, value)
        kwargs["extra"] = extra
        return msg, kwargs


LOGGER = ContextualLoggerAdapter(logging.getLogger(__name__), {})
EVENT_LOGGER = ContextualLoggerAdapter(logging.getLogger("course_catalog.events"), {})


def _log_event(message: str, **context: Any) -> None:
    emit_structured_event(
        "APP_EVENT",
        message,
        payload=context,
        correlation=_collect_correlation_context(),
        level=logging.INFO,
        logger=EVENT_LOGGER,
    )


class RequestContextMiddleware:
    """Assign a correlation identifier to each request and expose it via contextvars."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = _new_correlation_id()
        request_token = _REQUEST_ID_VAR.set(request_id)

        async def send_with_request_id(message: Dict[str, Any]) -> None:
            if message.get("type") == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((REQUEST_ID_HEADER.lower().encode("latin-1"), request_id.encode("latin-1")))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            _REQUEST_ID_VAR.reset(request_token)


class FolderCreatePayload(BaseModel):
    name: str
    description: str = ""
    category_id: Optional[int] = None


class GroupCreatePayload(BaseModel):
    name: str


class GroupUpsertPayload(BaseModel):
    name: str
    leader_id: Optional[int] = Field(None, ge=1)
    mentor_id: Optional[int] = Field(None, ge=1)


def _serialize_record(record: Any) -> Dict[str, Any]:
    return dataclasses.asdict(record)


def _serialize_entry(entry: Any) -> Dict[str, Any]:
    payload = _serialize_record(entry)
    payload["type"] = "material" if isinstance(entry, MaterialRecord) else "folder"
    return payload


def _error_payload(error: CatalogError) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"detail": str(error), "error": error.kind}
    if isinstance(error, ValidationError):
        payload["fields"] = error.errors
    return payload


def create_app(catalog: Catalog, *, root_path: str | None = None) -> FastAPI:
    """Return a configured FastAPI application."""

    app = FastAPI(
        title="Course Catalog",
        description="Folders, materials, sourcecasts and discussion groups",
        root_path=root_path or "",
    )
    app.state.catalog = catalog
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    repository = catalog.repository
    uploads = catalog.uploads
    folders = catalog.folders
    groups = catalog.groups

    @app.exception_handler(CatalogError)
    async def handle_catalog_error(request: Request, error: CatalogError) -> JSONResponse:
        status_code = next(
            (code for kind, code in _ERROR_STATUS.items() if isinstance(error, kind)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        level = logging.ERROR if status_code >= 500 else logging.INFO
        LOGGER.log(level, "%s %s failed with %s: %s", request.method, request.url.path, error.kind, error)
        return JSONResponse(status_code=status_code, content=_error_payload(error))

    def require_actor(x_actor_id: Optional[int] = Header(None)) -> ActorRecord:
        if x_actor_id is None:
            raise HTTPException(status_code=401, detail="X-Actor-Id header is required")
        actor = repository.get_actor(x_actor_id)
        if actor is None:
            raise HTTPException(status_code=401, detail="Unknown actor")
        return actor

    def _folder_listing(category_id: Optional[int]) -> Dict[str, Any]:
        entries = folders.list_folder(category_id)
        hierarchy: List[CategoryRecord] = folders.ancestor_chain(category_id)
        return {
            "id": category_id,
            "entries": [_serialize_entry(entry) for entry in entries],
            "hierarchy": [_serialize_record(record) for record in hierarchy],
        }

    # ------------------------------------------------------------------
    # Folders
    # ------------------------------------------------------------------
    @app.get("/api/folders")
    def list_root_folder() -> Dict[str, Any]:
        _log_event("Listing root folder")
        return _folder_listing(None)

    @app.get("/api/folders/{category_id}")
    def list_folder(category_id: int) -> Dict[str, Any]:
        _log_event("Listing folder", category_id=category_id)
        return _folder_listing(category_id)

    @app.post("/api/folders", status_code=status.HTTP_201_CREATED)
    def create_folder(
        payload: FolderCreatePayload,
        actor: ActorRecord = Depends(require_actor),
    ) -> Dict[str, Any]:
        _log_event("Creating folder", name=payload.name, parent_id=payload.category_id)
        record = folders.create_folder(actor, payload.model_dump())
        return {"folder": _serialize_record(record)}

    @app.delete(
        "/api/folders/{category_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
    )
    def delete_folder(category_id: int, actor: ActorRecord = Depends(require_actor)) -> Response:
        _log_event("Deleting folder", category_id=category_id)
        folders.delete_folder(actor, category_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Materials
    # ------------------------------------------------------------------
    @app.post("/api/materials", status_code=status.HTTP_201_CREATED)
    def upload_material(
        title: str = Form(...),
        description: str = Form(""),
        category_id: Optional[int] = Form(None),
        file: UploadFile = File(...),
        actor: ActorRecord = Depends(require_actor),
    ) -> Dict[str, Any]:
        _log_event("Uploading material", title=title, category_id=category_id)
        try:
            record = uploads.upload_material(
                actor,
                {"title": title, "description": description},
                category_id,
                blob=UploadedFile(
                    filename=file.filename or "material",
                    data=file.file,
                    content_type=file.content_type,
                ),
            )
        finally:
            file.file.close()
        return {"material": _serialize_record(record)}

    @app.delete(
        "/api/materials/{material_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
    )
    def delete_material(material_id: int, actor: ActorRecord = Depends(require_actor)) -> Response:
        _log_event("Deleting material", material_id=material_id)
        uploads.delete_material(actor, material_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Sourcecasts
    # ------------------------------------------------------------------
    @app.get("/api/sourcecasts")
    def list_sourcecasts() -> Dict[str, Any]:
        records = uploads.list_sourcecasts()
        return {"sourcecasts": [_serialize_record(record) for record in records]}

    @app.post("/api/sourcecasts", status_code=status.HTTP_201_CREATED)
    def upload_sourcecast(
        title: str = Form(...),
        description: str = Form(""),
        audio: UploadFile = File(...),
        actor: ActorRecord = Depends(require_actor),
    ) -> Dict[str, Any]:
        _log_event("Uploading sourcecast", title=title)
        try:
            record = uploads.upload_sourcecast(
                actor,
                {"title": title, "description": description},
                blob=UploadedFile(
                    filename=audio.filename or "sourcecast",
                    data=audio.file,
                    content_type=audio.content_type,
                ),
            )
        finally:
            audio.file.close()
        return {"sourcecast": _serialize_record(record)}

    @app.delete(
        "/api/sourcecasts/{sourcecast_id}",
        status_code=status.HTTP_204_NO_CONTENT,
        response_class=Response,
    )
    def delete_sourcecast(sourcecast_id: int, actor: ActorRecord = Depends(require_actor)) -> Response:
        _log_event("Deleting sourcecast", sourcecast_id=sourcecast_id)
        uploads.delete_sourcecast(actor, sourcecast_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------
    @app.post("/api/groups")
    def get_or_create_group(payload: GroupCreatePayload) -> Dict[str, Any]:
        _log_event("Resolving group", name=payload.name)
        return {"group": _serialize_record(groups.get_or_create(payload.name))}

    @app.put("/api/groups")
    def upsert_group(payload: GroupUpsertPayload) -> Dict[str, Any]:
        _log_event("Upserting group", name=payload.name)
        record = groups.upsert(payload.model_dump(exclude_unset=True))
        return {"group": _serialize_record(record)}

    # ------------------------------------------------------------------
    # Stored content
    # ------------------------------------------------------------------
    @app.get("/content/{location:path}")
    def serve_content(location: str) -> FileResponse:
        store = catalog.content_store
        if not isinstance(store, LocalContentStore):
            raise HTTPException(status_code=404, detail="File not found")
        try:
            target = store.resolve(location)
        except ValueError as error:
            raise HTTPException(status_code=404, detail="File not found") from error
        if not target.is_file():
            raise HTTPException(status_code=404, detail="File not found")
        return FileResponse(target)

    return app


__all__ = ["ContextualLoggerAdapter", "RequestContextMiddleware", "create_app"]
