"""In-memory scene export.

Turns a file set into a content-addressed bundle (hash -> bytes), a scene
entity manifest whose own hash is the export identity, and the realm
"about" record a viewer fetches first.

Process:
1. Hash each file and record (normalized path, hash) content mappings
2. Parse scene.json as entity metadata
3. Serialize the entity and hash it to get the entity id
4. Build the /about response pointing at the entity and content URL

The entity carries a creation timestamp, so two exports of the same files
differ in entity id. The stable identity of a file set is its content
mappings.
"""

import json
import logging
import time
from typing import Any, Mapping

from scenelab.exceptions import InvalidDescriptor, MissingDescriptor
from scenelab.models.export import (
    AboutResponse,
    CommsStatus,
    RealmConfigurations,
    SceneExport,
    ServiceStatus,
)
from scenelab.services.hashing import content_hash

logger = logging.getLogger(__name__)

DESCRIPTOR_FILE = "scene.json"
ENTITY_TYPE = "scene"
ENTITY_VERSION = "v3"
REALM_PREFIX = "scene-lab"


def normalize_file_path(filepath: str) -> str:
    """Normalize a path for content addressing.

    Backslashes become forward slashes, leading slashes are stripped and
    the result is lower-cased.
    """
    return filepath.replace("\\", "/").lstrip("/").lower()


def find_descriptor(files: Mapping[str, str]) -> str:
    """Return the raw scene.json content, accepted at root or with one leading slash."""
    for candidate in (DESCRIPTOR_FILE, f"/{DESCRIPTOR_FILE}"):
        if candidate in files:
            return files[candidate]
    raise MissingDescriptor()


def parse_descriptor(files: Mapping[str, str]) -> dict[str, Any]:
    """Parse scene.json from a file set.

    Raises:
        MissingDescriptor: scene.json is not in the file set
        InvalidDescriptor: scene.json is not a JSON object
    """
    raw = find_descriptor(files)
    try:
        descriptor = json.loads(raw)
    except json.JSONDecodeError as e:
        raise InvalidDescriptor(f"Failed to parse scene.json: {e}") from e
    if not isinstance(descriptor, dict):
        raise InvalidDescriptor("scene.json must contain a JSON object")
    return descriptor


def serialize_entity(entity: dict[str, Any]) -> bytes:
    """Compact, key-order-preserving JSON encoding of an entity."""
    return json.dumps(entity, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def export_scene(
    realm_id: str,
    files: Mapping[str, str],
    base_url: str,
    catalyst_url: str = "https://peer.decentraland.org",
    timestamp: int | None = None,
) -> SceneExport:
    """Export a file set in memory without writing to disk.

    Args:
        realm_id: Scene identifier used for the realm name
        files: Scene files (path -> content)
        base_url: Public URL where this export will be served
            (e.g. http://localhost:3001/scenes/scene_123)
        catalyst_url: Catalyst advertised for content-server and lambdas APIs
        timestamp: Entity timestamp in epoch milliseconds (defaults to now)

    Returns:
        SceneExport with hashed files (manifest included) and about record
    """
    # Descriptor first so a bad file set fails before any hashing work
    metadata = parse_descriptor(files)

    content_mappings: list[dict[str, str]] = []
    hashed_files: dict[str, bytes] = {}

    for filepath, text in files.items():
        normalized_path = normalize_file_path(filepath)
        data = text.encode("utf-8")
        file_hash = content_hash(data)

        hashed_files[file_hash] = data
        content_mappings.append({"file": normalized_path, "hash": file_hash})

    entity = {
        "content": content_mappings,
        "pointers": [],  # static exports are not deployed to parcels
        "timestamp": timestamp if timestamp is not None else int(time.time() * 1000),
        "type": ENTITY_TYPE,
        "metadata": metadata,
        "version": ENTITY_VERSION,
    }

    entity_bytes = serialize_entity(entity)
    entity_id = content_hash(entity_bytes)
    hashed_files[entity_id] = entity_bytes

    about = create_about_response(realm_id, entity_id, base_url, catalyst_url)

    logger.info(
        f"Exported {realm_id}: entity {entity_id}, "
        f"{len(content_mappings)} files, {len(hashed_files) - 1} unique blobs"
    )

    return SceneExport(
        entity_id=entity_id,
        hashed_files=hashed_files,
        about=about,
        content=tuple((m["file"], m["hash"]) for m in content_mappings),
    )


def create_about_response(
    realm_id: str,
    entity_id: str,
    base_url: str,
    catalyst_url: str = "https://peer.decentraland.org",
) -> AboutResponse:
    """Create the realm /about record for an exported entity.

    The scene URN embeds the entity id and the /contents/ prefix under
    ``base_url``, which is where the viewer fetches the entity and its files.
    """
    contents_url = f"{base_url.rstrip('/')}/contents/"
    catalyst = catalyst_url.rstrip("/")

    return AboutResponse(
        healthy=True,
        accepting_users=True,
        configurations=RealmConfigurations(
            network_id=0,
            global_scenes_urn=[],
            scenes_urn=[f"urn:decentraland:entity:{entity_id}?=&baseUrl={contents_url}"],
            realm_name=f"{REALM_PREFIX}-{realm_id}",
        ),
        content=ServiceStatus(healthy=True, public_url=f"{catalyst}/content"),
        comms=CommsStatus(healthy=True, protocol="v3", fixed_adapter="offline:offline"),
        lambdas=ServiceStatus(healthy=True, public_url=f"{catalyst}/lambdas"),
        bff=ServiceStatus(healthy=False, public_url=""),
    )
