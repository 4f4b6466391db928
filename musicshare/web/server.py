"""FastAPI application serving the audio library and its configuration form."""

from __future__ import annotations

import contextvars
import html
import logging
import os
import re
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import FastAPI, Form, HTTPException, Request
from fastapi import status
from fastapi.responses import FileResponse, HTMLResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..config import AppConfig
from ..services.library_config import ConfigSaveError, ConfigStore
from ..services.listing import DirectoryListing, LibraryListing, ListingService
from ..services.scanner import LibraryScanner
from ..services.tunnels import TunnelSupervisor
from ..services.updates import ConfigUpdateHandler

_STATIC_ROOT = Path(__file__).parent / "static"
_TEMPLATE_ROOT = Path(__file__).parent / "templates"
_INDEX_TEMPLATE = _TEMPLATE_ROOT / "index.html"
_ERROR_TEMPLATE = _TEMPLATE_ROOT / "error.html"
_PLACEHOLDER_PATTERN = re.compile(r"__MUSIC_SHARE_[A-Z]+__")


_REQUEST_ID_VAR: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "music_share_request_id",
    default=None,
)


def _new_correlation_id() -> str:
    return uuid.uuid4().hex


class ContextualLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that tags records with the active request identifier."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple[Any, Dict[str, Any]]:  # type: ignore[override]
        extra: Dict[str, Any] = dict(self.extra)
        provided = kwargs.get("extra")
        if isinstance(provided, dict):
            extra.update(provided)
        request_id = _REQUEST_ID_VAR.get()
        if request_id:
            extra.setdefault("request_id", request_id)
        kwargs["extra"] = extra
        return msg, kwargs


LOGGER = ContextualLoggerAdapter(logging.getLogger(__name__), {})


class RequestContextMiddleware:
    """Assign a correlation identifier to each request and log its outcome."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        request_id = _new_correlation_id()
        scope_state = scope.setdefault("state", {})
        if isinstance(scope_state, dict):
            scope_state["request_id"] = request_id
        token = _REQUEST_ID_VAR.set(request_id)
        started = time.perf_counter()
        status_holder: Dict[str, int] = {}

        async def _send(message: Message) -> None:
            if message.get("type") == "http.response.start":
                status_holder["status"] = int(message.get("status", 0))
            await send(message)

        try:
            await self.app(scope, receive, _send)
        finally:
            LOGGER.debug(
                "%s %s -> %s (%.1f ms)",
                scope.get("method"),
                scope.get("path"),
                status_holder.get("status", "-"),
                (time.perf_counter() - started) * 1000.0,
            )
            _REQUEST_ID_VAR.reset(token)


class ConfigUpdatePayload(BaseModel):
    directory: str = ""
    domain: str = ""


def _normalize_root_path(value: Optional[str]) -> str:
    if value is None:
        return ""
    normalized = value.strip()
    if not normalized:
        return ""
    if not normalized.startswith("/"):
        normalized = f"/{normalized}"
    normalized = normalized.rstrip("/")
    if normalized == "":
        return ""
    return normalized


def _resolve_library_path(root: Path, relative_path: str) -> Path:
    """Return *relative_path* under *root*; raise ``ValueError`` when it escapes.

    Containment is checked on the normalised path without following symlinks,
    so a listed link pointing outside the root stays downloadable.
    """

    root_path = os.path.abspath(root)
    candidate = os.path.normpath(os.path.join(root_path, relative_path))
    if os.path.commonpath([root_path, candidate]) != root_path:
        raise ValueError(f"{relative_path!r} escapes {root_path!r}")
    return Path(candidate)


def _fill_template(template: str, values: Dict[str, str]) -> str:
    """Substitute every placeholder in one pass so inserted text is never rescanned."""

    return _PLACEHOLDER_PATTERN.sub(
        lambda match: values.get(match.group(0), match.group(0)),
        template,
    )


def _render_directory(directory: DirectoryListing, prefix: str) -> str:
    heading = f'<h2 class="directory-path">{html.escape(directory.root)}</h2>'
    if directory.error is not None:
        return (
            '<section class="directory directory--error">'
            f"{heading}"
            f'<p class="error">{html.escape(directory.error)}</p>'
            "</section>"
        )
    if not directory.files:
        body = '<p class="empty">No audio files found.</p>'
    else:
        items = []
        for entry in directory.files:
            href = f"{prefix}/files/{directory.index}/{entry.relative_path}"
            items.append(
                f'<li><a href="{html.escape(href)}">{html.escape(entry.display_name)}</a>'
                f'<audio controls preload="none" src="{html.escape(href)}"></audio></li>'
            )
        body = '<ul class="files">' + "".join(items) + "</ul>"
    return f'<section class="directory">{heading}{body}</section>'


def _render_domains(listing: LibraryListing) -> str:
    if not listing.tunnel_domains:
        return '<p class="empty">No tunnel domains configured.</p>'
    items = "".join(
        f'<li><a href="https://{html.escape(domain)}">{html.escape(domain)}</a></li>'
        for domain in listing.tunnel_domains
    )
    return f'<ul class="domains">{items}</ul>'


def _request_prefix(request: Request, fallback: str) -> str:
    scope_root = request.scope.get("root_path")
    if isinstance(scope_root, str):
        normalized = _normalize_root_path(scope_root)
        if normalized:
            return normalized
    return fallback


def create_app(
    store: ConfigStore,
    *,
    config: AppConfig,
    tunnels: TunnelSupervisor | None = None,
    scanner: LibraryScanner | None = None,
    root_path: str | None = None,
) -> FastAPI:
    """Return a configured FastAPI application."""

    normalized_root = _normalize_root_path(root_path)
    app = FastAPI(
        title="Music Share",
        description="Browse and stream a local audio library",
        root_path=normalized_root,
    )
    app.state.server = None
    app.add_middleware(RequestContextMiddleware)

    tunnels = tunnels or TunnelSupervisor.from_app_config(config)
    listing_service = ListingService(store, scanner)
    update_handler = ConfigUpdateHandler(store, tunnels)
    app.state.store = store
    app.state.tunnels = tunnels
    app.state.listing_service = listing_service
    app.state.update_handler = update_handler

    app.mount(
        "/static",
        StaticFiles(directory=_STATIC_ROOT, check_dir=False),
        name="assets",
    )

    index_html = _INDEX_TEMPLATE.read_text(encoding="utf-8")
    error_html = _ERROR_TEMPLATE.read_text(encoding="utf-8")

    def _render_index(request: Request, listing: LibraryListing) -> str:
        prefix = _request_prefix(request, normalized_root)
        directories = "".join(_render_directory(item, prefix) for item in listing.directories)
        if not directories:
            directories = '<p class="empty">No directories configured yet.</p>'
        return _fill_template(
            index_html,
            {
                "__MUSIC_SHARE_PREFIX__": html.escape(prefix),
                "__MUSIC_SHARE_DIRECTORIES__": directories,
                "__MUSIC_SHARE_DOMAINS__": _render_domains(listing),
            },
        )

    def _render_error(request: Request, message: str, status_code: int) -> HTMLResponse:
        prefix = _request_prefix(request, normalized_root)
        body = _fill_template(
            error_html,
            {
                "__MUSIC_SHARE_PREFIX__": html.escape(prefix),
                "__MUSIC_SHARE_ERROR__": html.escape(message),
            },
        )
        return HTMLResponse(body, status_code=status_code)

    @app.get("/", response_class=HTMLResponse)
    def index(request: Request) -> HTMLResponse:
        listing = listing_service.build_current()
        return HTMLResponse(_render_index(request, listing))

    @app.post("/update")
    def update_config(
        request: Request,
        directory: str = Form(""),
        ngrok: str = Form(""),
    ):
        try:
            result = update_handler.apply(directory, ngrok)
        except ConfigSaveError as error:
            LOGGER.error("Could not persist update: %s", error)
            return _render_error(request, str(error), status.HTTP_500_INTERNAL_SERVER_ERROR)
        if not result.ok:
            return _render_error(request, result.message, status.HTTP_400_BAD_REQUEST)
        prefix = _request_prefix(request, normalized_root)
        return RedirectResponse(url=f"{prefix}/", status_code=status.HTTP_303_SEE_OTHER)

    @app.get("/api/library")
    def get_library() -> Dict[str, Any]:
        return listing_service.build_current().to_dict()

    @app.get("/api/config")
    def get_config() -> Dict[str, Any]:
        return store.snapshot().to_payload()

    @app.post("/api/config")
    def post_config(payload: ConfigUpdatePayload) -> Dict[str, Any]:
        try:
            result = update_handler.apply(payload.directory, payload.domain)
        except ConfigSaveError as error:
            raise HTTPException(status_code=500, detail=str(error)) from error
        if not result.ok:
            raise HTTPException(status_code=400, detail=result.message)
        return {
            "directory_added": result.directory_added,
            "domain_added": result.domain_added,
            "config": store.snapshot().to_payload(),
        }

    @app.get("/files/{index}/{path:path}")
    def serve_library_file(index: int, path: str) -> FileResponse:
        directories = store.snapshot().directories
        if index < 0 or index >= len(directories):
            raise HTTPException(status_code=404, detail="File not found")
        try:
            target = _resolve_library_path(Path(directories[index]), path)
        except (OSError, ValueError) as error:
            raise HTTPException(status_code=404, detail="File not found") from error
        if not target.is_file():
            raise HTTPException(status_code=404, detail="File not found")
        return FileResponse(target)

    return app


__all__ = ["ConfigUpdatePayload", "create_app"]
