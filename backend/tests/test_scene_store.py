"""Tests for the in-memory scene store and its history model."""

import asyncio

import pytest

from scenelab.exceptions import EntryNotFound, InvalidEntryId, SceneNotFound, TemplateNotFound
from scenelab.models import ConversationEntry
from scenelab.services.hashing import fileset_fingerprint
from scenelab.services.scene_export import export_scene
from scenelab.services.scene_store import SceneStore
from scenelab.services.templates import DEFAULT_TEMPLATE

pytestmark = pytest.mark.asyncio


async def _scene_with_history(store: SceneStore):
    """Scene with two user/assistant pairs, files v0 -> v1 -> v2."""
    scene = await store.create_from_template("default", "History")
    v0 = dict(scene.files)
    v1 = {**v0, "/src/index.ts": "// v1"}
    v2 = {**v0, "/src/index.ts": "// v2"}
    await store.append_conversation_entry(scene.id, ConversationEntry.user("make v1", v0))
    await store.append_conversation_entry(scene.id, ConversationEntry.assistant("made v1", v1))
    await store.append_conversation_entry(scene.id, ConversationEntry.user("make v2", v1))
    await store.append_conversation_entry(scene.id, ConversationEntry.assistant("made v2", v2))
    await store.update_files(scene.id, v2)
    return await store.get(scene.id), (v0, v1, v2)


async def _attach_export(store: SceneStore, scene_id: str):
    scene = await store.get(scene_id)
    built = {"scene.json": scene.files["scene.json"], "bin/index.js": "// built"}
    await store.set_built_files(scene_id, built, fileset_fingerprint(scene.files))
    exported = export_scene(scene_id, built, "http://testserver/scenes/" + scene_id)
    assert await store.set_export(scene_id, exported, fileset_fingerprint(scene.files, built))
    return exported


async def test_create_from_template_copies_files(store):
    scene = await store.create_from_template("default", "My Scene")

    assert scene.id.startswith("scene_")
    assert scene.name == "My Scene"
    assert scene.files == DEFAULT_TEMPLATE
    assert scene.conversation == []
    assert scene.built_files is None
    assert scene.export is None

    scene.files["scene.json"] = "tampered"
    other = await store.create_from_template("default", "Other")
    assert other.files["scene.json"] == DEFAULT_TEMPLATE["scene.json"]
    assert (await store.get(scene.id)).files["scene.json"] == DEFAULT_TEMPLATE["scene.json"]


async def test_unknown_template_creates_nothing(store):
    with pytest.raises(TemplateNotFound):
        await store.create_from_template("unknown-id", "Nope")
    assert await store.list_scenes() == []


async def test_registered_template_is_available():
    store = SceneStore(templates={"empty": {"scene.json": "{}"}})
    scene = await store.create_from_template("empty", "Blank")
    assert scene.files == {"scene.json": "{}"}
    assert store.template_ids() == ["default", "empty"]


async def test_get_missing_scene_returns_none(store):
    assert await store.get("scene_missing") is None
    with pytest.raises(SceneNotFound):
        await store.get_or_raise("scene_missing")


async def test_returned_scene_is_a_copy(store):
    scene = await store.create_from_template("default", "Copy")
    fetched = await store.get(scene.id)
    fetched.files.clear()
    fetched.conversation.append(ConversationEntry.user("sneaky", {}))

    again = await store.get(scene.id)
    assert again.files == DEFAULT_TEMPLATE
    assert again.conversation == []


async def test_update_files_replaces_and_clears_build(store):
    scene = await store.create_from_template("default", "Update")
    await _attach_export(store, scene.id)
    new_files = {"scene.json": "{}", "/src/index.ts": "// new"}

    updated = await store.update_files(scene.id, new_files)

    assert updated.files == new_files
    assert updated.built_files is None
    assert updated.export is None
    assert updated.updated_at >= scene.updated_at

    new_files["extra.ts"] = "later mutation"
    assert "extra.ts" not in (await store.get(scene.id)).files


async def test_update_files_missing_scene(store):
    with pytest.raises(SceneNotFound):
        await store.update_files("scene_missing", {"scene.json": "{}"})


async def test_append_does_not_deduplicate(store):
    scene = await store.create_from_template("default", "Dup")
    entry = ConversationEntry.user("twice", scene.files)
    await store.append_conversation_entry(scene.id, entry)
    updated = await store.append_conversation_entry(scene.id, entry)
    assert len(updated.conversation) == 2


async def test_append_missing_scene(store):
    with pytest.raises(SceneNotFound):
        await store.append_conversation_entry("scene_missing", ConversationEntry.user("x", {}))


async def test_get_snapshot_matches_every_entry(store):
    scene, _ = await _scene_with_history(store)
    for entry in scene.conversation:
        assert await store.get_snapshot(scene.id, entry.id) == entry.files_snapshot


async def test_get_snapshot_is_a_defensive_copy(store):
    scene, (v0, _, _) = await _scene_with_history(store)
    first = scene.conversation[0]

    snapshot = await store.get_snapshot(scene.id, first.id)
    snapshot["/src/index.ts"] = "mutated"

    assert await store.get_snapshot(scene.id, first.id) == v0


async def test_entry_snapshot_is_read_only(store):
    scene, _ = await _scene_with_history(store)
    with pytest.raises(TypeError):
        scene.conversation[0].files_snapshot["scene.json"] = "nope"


async def test_get_snapshot_unknown_entry(store):
    scene, _ = await _scene_with_history(store)
    with pytest.raises(EntryNotFound):
        await store.get_snapshot(scene.id, "msg_missing")
    with pytest.raises(InvalidEntryId):
        await store.get_snapshot(scene.id, " ")


async def test_revert_sets_files_and_keeps_history(store):
    scene, (v0, v1, v2) = await _scene_with_history(store)
    await _attach_export(store, scene.id)
    target = scene.conversation[1]

    reverted = await store.revert_to_snapshot(scene.id, target.id)

    assert reverted.files == v1
    assert reverted.built_files is None
    assert reverted.export is None
    assert len(reverted.conversation) == len(scene.conversation)

    # Later entries stay usable after a revert
    later = scene.conversation[3]
    again = await store.revert_to_snapshot(scene.id, later.id)
    assert again.files == v2


async def test_revert_unknown_entry(store):
    scene, _ = await _scene_with_history(store)
    with pytest.raises(EntryNotFound):
        await store.revert_to_snapshot(scene.id, "msg_missing")


async def test_reset_clears_history_only(store):
    scene, _ = await _scene_with_history(store)
    exported = await _attach_export(store, scene.id)
    before = await store.get(scene.id)

    reset = await store.reset_conversation(scene.id)

    assert reset.conversation == []
    assert reset.files == before.files
    assert reset.built_files == before.built_files
    assert reset.export is exported
    for entry in scene.conversation:
        with pytest.raises(EntryNotFound):
            await store.get_snapshot(scene.id, entry.id)


async def test_reset_drops_snapshot_exports(store):
    scene, _ = await _scene_with_history(store)
    entry = scene.conversation[0]
    exported = export_scene(scene.id, dict(entry.files_snapshot), "http://testserver")
    assert await store.set_snapshot_export(scene.id, entry.id, exported)

    reset = await store.reset_conversation(scene.id)
    assert reset.snapshot_exports == {}


async def test_snapshot_export_requires_existing_entry(store):
    scene = await store.create_from_template("default", "Snap")
    exported = export_scene(scene.id, scene.files, "http://testserver")
    assert not await store.set_snapshot_export(scene.id, "msg_missing", exported)


async def test_commit_modification_is_one_step(store):
    scene = await store.create_from_template("default", "Commit")
    merged = {**scene.files, "/src/index.ts": "// ai"}
    built = {"bin/index.js": "// built"}

    updated = await store.commit_modification(
        scene.id,
        ConversationEntry.user("prompt", scene.files),
        ConversationEntry.assistant("explained", merged),
        merged,
        built,
    )

    assert [e.role.value for e in updated.conversation] == ["user", "assistant"]
    assert updated.files == merged
    assert updated.built_files == built


async def test_stale_build_output_is_discarded(store):
    scene = await store.create_from_template("default", "Stale")
    fingerprint = fileset_fingerprint(scene.files)
    await store.update_files(scene.id, {"scene.json": "{}"})

    assert not await store.set_built_files(scene.id, {"bin/index.js": "old"}, fingerprint)
    assert (await store.get(scene.id)).built_files is None


async def test_stale_export_is_discarded(store):
    scene = await store.create_from_template("default", "Stale export")
    exported = export_scene(scene.id, scene.files, "http://testserver")
    fingerprint = fileset_fingerprint(scene.files, None)
    await store.update_files(scene.id, {**scene.files, "extra.json": "{}"})

    assert not await store.set_export(scene.id, exported, fingerprint)
    assert (await store.get(scene.id)).export is None


async def test_export_for_same_state_keeps_first(store):
    scene = await store.create_from_template("default", "Twice")
    first = await _attach_export(store, scene.id)
    current = await store.get(scene.id)
    second = export_scene(scene.id, current.built_files, "http://testserver/scenes/" + scene.id, timestamp=1)

    assert not await store.set_export(
        scene.id, second, fileset_fingerprint(current.files, current.built_files)
    )
    assert (await store.get(scene.id)).export is first


async def test_delete_and_list(store):
    a = await store.create_from_template("default", "A")
    b = await store.create_from_template("default", "B")
    assert {s.id for s in await store.list_scenes()} == {a.id, b.id}

    assert await store.delete(a.id)
    assert not await store.delete(a.id)
    assert [s.id for s in await store.list_scenes()] == [b.id]
    assert await store.get(a.id) is None


async def test_mutations_bump_updated_at(store):
    scene = await store.create_from_template("default", "Clock")
    await asyncio.sleep(0.01)
    updated = await store.append_conversation_entry(scene.id, ConversationEntry.user("x", scene.files))
    assert updated.updated_at > scene.updated_at
    assert updated.created_at == scene.created_at


async def test_lock_is_per_scene(store):
    a = await store.create_from_template("default", "A")
    b = await store.create_from_template("default", "B")

    assert store.lock(a.id) is store.lock(a.id)
    assert store.lock(a.id) is not store.lock(b.id)


async def test_unknown_scene_has_no_lock(store):
    with pytest.raises(SceneNotFound):
        store.lock("scene_missing")

    assert store._locks == {}


async def test_delete_drops_lock(store):
    scene = await store.create_from_template("default", "Gone")
    await store.delete(scene.id)

    with pytest.raises(SceneNotFound):
        store.lock(scene.id)
    assert store._locks == {}
