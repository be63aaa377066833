"""Realm content-server routes consumed by the scene viewer.

Each live scene and each conversation snapshot is served as its own realm:
an /about discovery record plus content fetched by hash under /contents/.
"""

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse, Response

from scenelab.api.deps import Exports
from scenelab.exceptions import ContentNotFound
from scenelab.models import SceneExport

logger = logging.getLogger(__name__)

router = APIRouter()

# Content is permanently tied to its hash
IMMUTABLE_CACHE = "public, max-age=31536000, immutable"
SNAPSHOT_ABOUT_CACHE = "public, max-age=3600"
LIVE_ABOUT_CACHE = "no-cache"


def sniff_content_type(content: bytes) -> str:
    """Best-effort content type from the first bytes of a blob."""
    head = content[:100].decode("utf-8", errors="ignore").strip()
    if head.startswith("{") or head.startswith("["):
        return "application/json"
    if any(token in head for token in ("export", "import", "function")):
        return "application/javascript"
    return "application/octet-stream"


def _content_response(exported: SceneExport, content_hash: str) -> Response:
    content = exported.get_content(content_hash)
    if content is None:
        raise ContentNotFound(content_hash)
    return Response(
        content=content,
        media_type=sniff_content_type(content),
        headers={"Cache-Control": IMMUTABLE_CACHE},
    )


@router.get("/scenes/{scene_id}/about")
async def get_realm_about(scene_id: str, exports: Exports) -> JSONResponse:
    """Discovery record for the live scene; exported lazily."""
    exported = await exports.export_live(scene_id)
    logger.info(f"Serving /about for scene {scene_id}")
    return JSONResponse(
        content=exported.about.to_json_dict(),
        headers={"Cache-Control": LIVE_ABOUT_CACHE},
    )


@router.get("/scenes/{scene_id}/contents/{content_hash}")
async def get_content_by_hash(scene_id: str, content_hash: str, exports: Exports) -> Response:
    """Content-addressable storage endpoint for the live scene."""
    exported = await exports.export_live(scene_id)
    return _content_response(exported, content_hash)


@router.get("/scenes/{scene_id}/snapshots/{entry_id}/about")
async def get_snapshot_realm_about(scene_id: str, entry_id: str, exports: Exports) -> JSONResponse:
    """Discovery record for a historical snapshot."""
    exported = await exports.export_snapshot(scene_id, entry_id)
    logger.info(f"Serving /about for snapshot {entry_id} of scene {scene_id}")
    return JSONResponse(
        content=exported.about.to_json_dict(),
        headers={"Cache-Control": SNAPSHOT_ABOUT_CACHE},
    )


@router.get("/scenes/{scene_id}/snapshots/{entry_id}/contents/{content_hash}")
async def get_snapshot_content_by_hash(
    scene_id: str,
    entry_id: str,
    content_hash: str,
    exports: Exports,
) -> Response:
    """Content-addressable storage endpoint for a snapshot."""
    exported = await exports.export_snapshot(scene_id, entry_id)
    return _content_response(exported, content_hash)
