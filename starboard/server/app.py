"""FastAPI app exposing the primary and legacy remote tiers."""

import json
import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..config import StarboardConfig
from ..document import default_document
from .backends import LegacyBlobStore, PrimaryRowStore

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Allow-Methods": "GET, PUT, OPTIONS",
}

ALL_METHODS = ["GET", "PUT", "POST", "PATCH", "DELETE", "OPTIONS"]


def _json(status_code: int, body: Any, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body, headers=headers)


async def _read_document(request: Request) -> dict[str, Any] | None:
    """Parse a PUT body, returning None unless it is an object with ``classes``."""
    raw = await request.body()
    try:
        parsed = json.loads(raw or b"{}")
    except ValueError:
        return None
    if not isinstance(parsed, dict) or not isinstance(parsed.get("classes"), dict):
        return None
    return parsed


def create_app(
    config: StarboardConfig | None = None,
    primary: PrimaryRowStore | None = None,
    legacy: LegacyBlobStore | None = None,
) -> FastAPI:
    """Create the tier server application.

    Args:
        config: Application configuration (used for default store paths).
        primary: Optional primary row store; built from config if omitted.
        legacy: Optional legacy blob store; built from config if omitted.

    Returns:
        Configured FastAPI application.
    """
    config = config or StarboardConfig()
    primary = primary or PrimaryRowStore(config.server.primary_db_path)
    legacy = legacy or LegacyBlobStore(config.server.legacy_blob_dir)

    app = FastAPI(
        title="StarBoard Storage",
        description="Remote storage tiers for the StarBoard document",
        version="2.0",
    )

    app.state.primary = primary
    app.state.legacy = legacy

    # ==================== Primary tier ====================

    @app.api_route("/api/primary", methods=ALL_METHODS)
    async def primary_tier(request: Request):
        """Hosted-database tier. Seeds a default document on first read."""
        try:
            if request.method == "GET":
                data = primary.get()
                if data is None:
                    data = default_document()
                    primary.insert_if_missing(data)
                    logger.info("Seeded default document in primary tier")
                return _json(200, data, {"Access-Control-Allow-Origin": "*"})

            if request.method == "PUT":
                document = await _read_document(request)
                if document is None:
                    return _json(400, {"error": "Invalid data structure"}, CORS_HEADERS)
                primary.upsert(document)
                return _json(200, {"success": True}, {"Access-Control-Allow-Origin": "*"})

            if request.method == "OPTIONS":
                return _json(200, {}, CORS_HEADERS)

            return _json(
                405, {"error": "Method not allowed"}, {"Allow": "GET, PUT, OPTIONS"}
            )
        except Exception as e:
            logger.error(f"Primary tier error: {e}")
            return _json(500, {"error": str(e)})

    # ==================== Legacy tier ====================

    @app.api_route("/api/legacy", methods=ALL_METHODS)
    async def legacy_tier(request: Request):
        """Legacy blob tier. Returns a default document when empty."""
        try:
            if request.method == "GET":
                data = legacy.get() or default_document()
                return _json(200, data, {"Cache-Control": "no-store"})

            if request.method == "PUT":
                document = await _read_document(request)
                if document is None:
                    return _json(400, {"error": "Invalid data"})
                legacy.put(document)
                return _json(200, {"ok": True})

            return _json(405, {"error": "Method not allowed"}, {"Allow": "GET, PUT"})
        except Exception as e:
            logger.error(f"Legacy tier error: {e}")
            return _json(500, {"error": str(e)})

    return app
