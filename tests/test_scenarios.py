"""
End-to-end offline/online scenarios.

Each scenario drives one or more complete data layers against a shared
in-memory remote store.
"""

import pytest

from studysync.app import DataLayer
from studysync.services.blob_storage import MemoryBlobStorage
from studysync.services.sync_queue import SyncOperation
from tests.mocks.fake_remote import USER_ID, FakeRemoteStore, go_offline, go_online

pytestmark = pytest.mark.scenario


@pytest.fixture
async def devices(test_config):
    """Two devices with separate local stores sharing one remote store."""
    remote = FakeRemoteStore(online=False)
    layers = []
    for _ in range(2):
        layer = DataLayer(
            test_config,
            blob_storage=MemoryBlobStorage(),
            remote_store=remote,
            platform_online=False,
        )
        await layer.start()
        layers.append(layer)

    yield remote, layers

    for layer in layers:
        await layer.close()


async def test_offline_todo_synced_after_reconnect(data_layer, fake_remote):
    """Offline create is queued, then replayed once connectivity returns."""
    await go_offline(data_layer.network_monitor, fake_remote)

    created = await data_layer.todos.create({"user_id": USER_ID, "title": "Finish thesis"})

    assert created.success
    assert created.data.completed is False
    items = await data_layer.sync_queue.get_pending(USER_ID)
    assert len(items) == 1
    assert items[0].operation is SyncOperation.INSERT
    assert items[0].table_name == "todos"
    assert items[0].record_id == created.data.id
    assert not items[0].synced
    assert fake_remote.rows("todos") == []

    await go_online(data_layer.network_monitor, fake_remote)

    item = await data_layer.sync_queue.get_item(items[0].id)
    assert item.synced
    remote_rows = fake_remote.rows("todos")
    assert [(row["id"], row["title"]) for row in remote_rows] == [
        (created.data.id, "Finish thesis")
    ]

    online = await data_layer.todos.get(created.data.id)
    assert online.source == "remote"
    assert online.data.title == "Finish thesis"


async def test_same_username_created_on_two_devices(devices):
    """First replay wins; the second is accepted as a conflict without a second row."""
    remote, (device_a, device_b) = devices

    maria_a = await device_a.users.create({"username": "maria", "password_hash": "a"})
    maria_b = await device_b.users.create({"username": "maria", "password_hash": "b"})
    assert maria_a.source == maria_b.source == "local"
    assert maria_a.data.id != maria_b.data.id

    device_a.network_monitor.set_active_user(maria_a.data.id)
    await go_online(device_a.network_monitor, remote)
    assert device_a.sync_engine.last_report.synced_items == 1

    device_b.network_monitor.set_active_user(maria_b.data.id)
    await device_b.network_monitor.set_platform_online(True)
    report = device_b.sync_engine.last_report

    assert report.conflict_items == 1
    assert await device_b.sync_queue.pending_count(maria_b.data.id) == 0

    rows = remote.rows("users")
    assert [(row["id"], row["password_hash"]) for row in rows] == [(maria_a.data.id, "a")]

    # Device B keeps its orphaned local profile
    local_b = await device_b.local_store.query("SELECT id FROM users")
    assert [row["id"] for row in local_b] == [maria_b.data.id]


async def test_offline_changes_survive_restart(test_config):
    """Local writes and their queue entries outlive the process."""
    storage = MemoryBlobStorage()
    remote = FakeRemoteStore(online=False)

    first = DataLayer(test_config, blob_storage=storage, remote_store=remote, platform_online=False)
    await first.start()
    created = await first.notes.create(
        {"user_id": USER_ID, "title": "Krebs cycle", "content": "8 steps"}
    )
    await first.notes.update(created.data.id, {"content": "8 steps, 2 turns"})
    await first.close()

    second = DataLayer(test_config, blob_storage=storage, remote_store=remote, platform_online=False)
    await second.start()
    try:
        note = await second.notes.get(created.data.id)
        assert note.source == "local"
        assert note.data.content == "8 steps, 2 turns"
        pending = await second.sync_queue.get_pending(USER_ID)
        assert [i.operation for i in pending] == [SyncOperation.INSERT, SyncOperation.UPDATE]

        second.network_monitor.set_active_user(USER_ID)
        await go_online(second.network_monitor, remote)

        assert remote.rows("notes")[0]["content"] == "8 steps, 2 turns"
        assert await second.sync_queue.pending_count(USER_ID) == 0
    finally:
        await second.close()


async def test_study_session_offline(data_layer, fake_remote):
    """A realistic offline session across several entities replays in order."""
    await go_offline(data_layer.network_monitor, fake_remote)

    attempt = await data_layer.quiz_attempts.create(
        {
            "user_id": USER_ID,
            "quiz_type": "chemistry",
            "quiz_title": "Periodic table",
            "total_questions": 5,
            "correct_answers": 4,
            "score": 80,
            "time_taken": 95,
            "answers": {"q1": "B"},
        }
    )
    await data_layer.pomodoro_sessions.create(
        {
            "user_id": USER_ID,
            "type": "work",
            "duration": 25,
            "completed_at": "2026-10-17T09:25:00.000Z",
            "date": "2026-10-17",
        }
    )
    await data_layer.pomodoro_settings.save_for_user(USER_ID, {"work_duration": 45})
    await data_layer.activity_logs.log(USER_ID, "quiz_completed", "quiz")
    await data_layer.login_history.record_login(USER_ID, "2026-10-17")

    status = await data_layer.get_status()
    assert status["network"]["online"] is False
    assert status["sync"]["queue"]["pending"] == 5

    await go_online(data_layer.network_monitor, fake_remote)

    assert data_layer.sync_engine.last_report.synced_items == 5
    assert fake_remote.rows("quiz_attempts")[0]["answers"] == {"q1": "B"}
    assert fake_remote.rows("quiz_attempts")[0]["id"] == attempt.data.id
    assert fake_remote.rows("pomodoro_settings")[0]["work_duration"] == 45
    assert len(fake_remote.rows("login_history")) == 1
