"""Static asset server for the prebuilt frontend with runtime config injection."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path, PurePosixPath
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, HTMLResponse, PlainTextResponse, Response

from launcher.frontend.config import ensure_frontend_assets
from shared.models.runtime import RUNTIME_CONFIG_GLOBAL, RuntimeConfig

LOGGER = logging.getLogger(__name__)

NO_STORE = {"Cache-Control": "no-store, max-age=0"}
DEFAULT_CONTENT_TYPE = "application/octet-stream"
MIME_TYPES = {
    ".html": "text/html; charset=utf-8",
    ".js": "text/javascript; charset=utf-8",
    ".mjs": "text/javascript; charset=utf-8",
    ".css": "text/css; charset=utf-8",
    ".json": "application/json; charset=utf-8",
    ".svg": "image/svg+xml",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".ico": "image/x-icon",
    ".txt": "text/plain; charset=utf-8",
    ".mp3": "audio/mpeg",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
}


def content_type_for(path: str) -> str:
    return MIME_TYPES.get(PurePosixPath(path).suffix.lower(), DEFAULT_CONTENT_TYPE)


def runtime_script(runtime: RuntimeConfig) -> str:
    payload = runtime.to_json().replace("</", "<\\/")
    return f"<script>window.{RUNTIME_CONFIG_GLOBAL} = {payload};</script>"


def inject_runtime_config(index_html: str, runtime: RuntimeConfig) -> str:
    script = runtime_script(runtime)
    if "</head>" in index_html:
        return index_html.replace("</head>", f"{script}</head>", 1)
    return script + index_html


def resolve_asset_path(root: Path, request_path: str) -> Optional[Path]:
    """Map a URL path onto a file under ``root``; ``None`` if it would escape."""

    if "\x00" in request_path:
        return None
    relative = request_path.replace("\\", "/").lstrip("/")
    candidate = Path(os.path.normpath(root / relative)) if relative else root
    try:
        candidate.resolve().relative_to(root.resolve())
    except ValueError:
        return None
    return candidate


def create_app(root: Path, runtime: Optional[RuntimeConfig] = None) -> FastAPI:
    """Build the asset app; fails fast when ``index.html`` is missing."""

    root = root.resolve()
    index_file = ensure_frontend_assets(root)
    injected_index = inject_runtime_config(index_file.read_text(encoding="utf-8"), runtime or RuntimeConfig())

    app = FastAPI(title="codex-monitor frontend", docs_url=None, redoc_url=None, openapi_url=None)

    def _index() -> HTMLResponse:
        return HTMLResponse(injected_index, headers=NO_STORE)

    @app.api_route("/{full_path:path}", methods=["GET", "HEAD"], include_in_schema=False)
    async def serve(full_path: str, request: Request) -> Response:
        path = request.url.path
        if path == "/":
            return _index()
        target = resolve_asset_path(root, path)
        if target is None:
            LOGGER.debug("Rejected path outside asset root: %s", path)
            return PlainTextResponse("invalid path", status_code=400)
        if target.is_file():
            return FileResponse(target, media_type=content_type_for(target.name))
        if PurePosixPath(path).suffix:
            return PlainTextResponse("not found", status_code=404)
        return _index()

    return app
