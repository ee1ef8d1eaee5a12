# tests/test_sync.py

from __future__ import annotations

import pytest

from prep_master.core.errors import RemoteUnavailable, SchemaMismatch
from prep_master.storage.snapshot import SCHEMA_VERSION, Snapshot
from prep_master.sync.reconciler import SyncWinner, reconcile
from prep_master.sync.remote_store import JsonDirRemoteStore
from prep_master.sync.service import load_local_into_state, load_remote, save, sync_on_login
from prep_master.tasks.task_models import Subject

from .fakes import FakeRemoteStore, make_task


def _snap(last_backup: str, *task_ids: str, target: str = "2026-02-01") -> Snapshot:
    return Snapshot(
        tasks=[make_task(i) for i in task_ids],
        subjects=[Subject(id="s1", name="Math", sub=["Limits"])],
        target_date=target,
        last_backup=last_backup,
    )


def test_remote_newer_wins() -> None:
    local = _snap("2024-01-01T00:00:00.000Z", "local-task")
    remote = _snap("2024-01-02T00:00:00.000Z", "remote-task", target="2026-03-01")

    result = reconcile(local, remote)

    assert result.winner == SyncWinner.REMOTE
    assert [t.id for t in result.merged.tasks] == ["remote-task"]
    assert result.merged.target_date == "2026-03-01"
    assert result.merged.last_backup == "2024-01-02T00:00:00.000Z"


def test_remote_absent_local_wins() -> None:
    local = _snap("2024-01-01T00:00:00.000Z", "a")
    result = reconcile(local, None)
    assert result.winner == SyncWinner.LOCAL
    assert result.merged is local


def test_equal_or_older_remote_keeps_local() -> None:
    local = _snap("2024-01-02T00:00:00.000Z", "a")
    assert reconcile(local, _snap("2024-01-02T00:00:00.000Z", "b")).winner == SyncWinner.LOCAL
    assert reconcile(local, _snap("2024-01-01T23:59:59.999Z", "b")).winner == SyncWinner.LOCAL


def test_remote_without_target_date_keeps_local_target() -> None:
    local = _snap("2024-01-01T00:00:00.000Z", target="2026-05-05")
    remote = _snap("2024-01-03T00:00:00.000Z", target="")
    assert reconcile(local, remote).merged.target_date == "2026-05-05"


def test_version_mismatch_is_not_treated_as_absent() -> None:
    local = _snap("2024-01-01T00:00:00.000Z")
    remote = _snap("2024-01-02T00:00:00.000Z")
    remote.schema_version = 3.1
    with pytest.raises(SchemaMismatch) as exc:
        reconcile(local, remote)
    assert exc.value.expected == SCHEMA_VERSION
    assert exc.value.actual == 3.1


@pytest.mark.parametrize(
    ("raw", "fragment"),
    [
        ([], "Invalid JSON structure"),
        ({"schema": 3.0, "tasks": [], "subjects": []}, "Expected 3.2, got 3.0"),
        ({"schema": 3.2, "subjects": []}, "Missing tasks array"),
        ({"schema": 3.2, "tasks": [], "subjects": "Math"}, "Missing subjects array"),
        ({"schema": 3.2, "tasks": [], "subjects": [], "lastBackup": 1704067200000}, "Malformed lastBackup"),
        ({"schema": 3.2, "tasks": [], "subjects": [], "lastBackup": "yesterday"}, "Malformed lastBackup"),
    ],
)
def test_snapshot_validation_errors(raw, fragment) -> None:
    with pytest.raises(SchemaMismatch, match=fragment):
        Snapshot.from_dict(raw)


def test_incoming_timestamps_are_normalized_for_comparison() -> None:
    snap = Snapshot.from_dict(
        {"schema": 3.2, "tasks": [], "subjects": [], "lastBackup": "2024-01-02T00:00:00Z"}
    )
    assert snap.last_backup == "2024-01-02T00:00:00.000Z"


@pytest.mark.asyncio
async def test_login_sync_adopts_newer_remote(state) -> None:
    state.settings.user_id = "u1"
    state.store.add(make_task("local-only"))
    state.last_backup = "2024-01-01T00:00:00.000Z"
    remote_doc = _snap("2024-01-02T00:00:00Z", "from-cloud").to_dict()
    state.remote = FakeRemoteStore(docs={"u1": remote_doc})

    result = await sync_on_login(state)

    assert result.winner == SyncWinner.REMOTE
    assert [t.id for t in state.store.list_tasks()] == ["from-cloud"]
    assert state.last_backup == "2024-01-02T00:00:00.000Z"
    assert state.remote.saves == 0
    # adopted data is written locally as well
    assert load_local_into_state(state) is True
    assert state.store.get("from-cloud") is not None


@pytest.mark.asyncio
async def test_login_sync_pushes_when_remote_absent(state) -> None:
    state.settings.user_id = "u1"
    state.store.add(make_task("mine"))
    state.remote = FakeRemoteStore()

    result = await sync_on_login(state)

    assert result.winner == SyncWinner.LOCAL
    pushed = state.remote.docs["u1"]
    assert pushed["schema"] == SCHEMA_VERSION
    assert [t["id"] for t in pushed["tasks"]] == ["mine"]
    assert pushed["lastBackup"] == state.last_backup != ""


@pytest.mark.asyncio
async def test_login_sync_with_remote_down_keeps_local(state) -> None:
    state.settings.user_id = "u1"
    state.store.add(make_task("mine"))
    state.remote = FakeRemoteStore(fail=True)

    result = await sync_on_login(state)

    assert result.winner == SyncWinner.LOCAL
    assert state.store.get("mine") is not None


@pytest.mark.asyncio
async def test_login_sync_surfaces_remote_schema_mismatch(state) -> None:
    state.settings.user_id = "u1"
    state.store.add(make_task("mine"))
    state.remote = FakeRemoteStore(docs={"u1": {"schema": 2, "tasks": [], "subjects": []}})

    with pytest.raises(SchemaMismatch):
        await sync_on_login(state)
    assert state.store.get("mine") is not None


@pytest.mark.asyncio
async def test_save_writes_local_even_when_push_fails(state) -> None:
    state.settings.user_id = "u1"
    state.remote = FakeRemoteStore(fail=True)
    state.store.add(make_task("mine"))

    outcome = await save(state)

    assert outcome.saved_local is True
    assert outcome.pushed is False
    state.store.replace_all([], [])
    assert load_local_into_state(state) is True
    assert state.store.get("mine") is not None
    assert state.last_backup == outcome.last_backup


@pytest.mark.asyncio
async def test_offline_session_never_pushes(state) -> None:
    state.remote = FakeRemoteStore()
    outcome = await save(state)
    assert outcome.pushed is False
    assert state.remote.docs == {}


@pytest.mark.asyncio
async def test_login_sync_drops_timer_bound_to_vanished_task(state, clock) -> None:
    state.settings.user_id = "u1"
    state.store.add(make_task("local-only"))
    state.last_backup = "2024-01-01T00:00:00.000Z"
    state.timer.start("local-only")
    clock.advance(5_000)
    state.remote = FakeRemoteStore(docs={"u1": _snap("2024-02-01T00:00:00.000Z", "x").to_dict()})

    await sync_on_login(state)

    assert state.timer.active is None
    assert state.local.get("prepMasterTimer") is None


@pytest.mark.asyncio
async def test_json_dir_remote_store_round_trip(tmp_path) -> None:
    store = JsonDirRemoteStore(tmp_path / "remote")
    assert await store.load("user@example.com") is None

    doc = _snap("2024-01-02T00:00:00.000Z", "a").to_dict()
    await store.save("user@example.com", doc)

    assert await store.load("user@example.com") == doc
    assert (tmp_path / "remote" / "user_example.com.json").exists()


def test_wire_version_key_is_schema_and_schema_version_is_accepted() -> None:
    doc = _snap("2024-01-02T00:00:00.000Z", "a").to_dict()
    assert doc["schema"] == SCHEMA_VERSION
    assert "schemaVersion" not in doc

    legacy = {"schemaVersion": 3.2, "tasks": [], "subjects": [], "lastBackup": ""}
    assert Snapshot.from_dict(legacy).schema_version == SCHEMA_VERSION


@pytest.mark.asyncio
async def test_login_sync_rejects_epoch_number_last_backup(state) -> None:
    state.settings.user_id = "u1"
    state.store.add(make_task("mine"))
    doc = {"schema": 3.2, "tasks": [], "subjects": [], "lastBackup": 1704067200000}
    state.remote = FakeRemoteStore(docs={"u1": doc})

    with pytest.raises(SchemaMismatch):
        await sync_on_login(state)
    assert state.store.get("mine") is not None


@pytest.mark.asyncio
async def test_undecodable_remote_document_is_unavailable(tmp_path, state) -> None:
    root = tmp_path / "remote"
    root.mkdir(exist_ok=True)
    (root / "u1.json").write_bytes(b'{"schema": 3.2, "x": "\xff\xfe"}')
    store = JsonDirRemoteStore(root)

    with pytest.raises(RemoteUnavailable):
        await store.load("u1")

    state.settings.user_id = "u1"
    state.remote = store
    assert await load_remote(state) is None


@pytest.mark.asyncio
async def test_invalid_json_remote_document_is_unavailable(tmp_path) -> None:
    root = tmp_path / "remote"
    root.mkdir(exist_ok=True)
    (root / "u1.json").write_text("{not json", "utf-8")

    with pytest.raises(RemoteUnavailable):
        await JsonDirRemoteStore(root).load("u1")
