from __future__ import annotations

import asyncio
import gc
import logging
import weakref
from typing import Any, Dict

import pytest

from workspace_overlay.config import WorkspaceEventType, WorkspaceManager
from workspace_overlay.config.exceptions import WorkspaceError, WorkspaceValidationError
from workspace_overlay.config.storage import LAST_ACTIVE_KEY, SETTINGS_KEY, MemorySettingsStore


def run(coro):
    return asyncio.run(coro)


class GatedStore(MemorySettingsStore):
    """Holds every write until ``gate`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.gate = None

    async def save(self, key: str, value: Dict[str, Any]) -> None:
        if self.gate is not None:
            await self.gate.wait()
        await super().save(key, value)


@pytest.fixture
def scenario_manager(make_manager) -> WorkspaceManager:
    store = MemorySettingsStore({SETTINGS_KEY: {"sort": "date", "view_mode": "list"}})
    return make_manager(store)


def _create_kanban_workspace(manager: WorkspaceManager) -> str:
    workspace = run(manager.create_workspace("B", base_workspace_id=manager.default_workspace_id))
    effective = manager.get_effective_settings(workspace.id)
    effective["view_mode"] = "kanban"
    run(manager.save_overrides(workspace.id, effective))
    return workspace.id


def test_bootstrap_creates_default_workspace(manager: WorkspaceManager, store) -> None:
    workspaces = manager.get_all_workspaces()
    assert [ws.name for ws in workspaces] == ["Default"]
    assert manager.default_workspace_id == manager.active_workspace_id == workspaces[0].id
    assert workspaces[0].overrides == {}
    assert manager.needs_save

    run(manager.save())
    document = store.writes_for(SETTINGS_KEY)[-1]
    assert document["workspaces"]["default_workspace_id"] == workspaces[0].id
    assert document["workspaces"]["version"] == 2
    assert not manager.needs_save


def test_bootstrap_repairs_stray_default_overrides_and_dangling_active(make_manager) -> None:
    store = MemorySettingsStore(
        {
            SETTINGS_KEY: {
                "view_mode": "list",
                "workspaces": {
                    "version": 2,
                    "default_workspace_id": "main",
                    "active_workspace_id": "gone",
                    "order": ["other", "main"],
                    "by_id": {
                        "main": {
                            "id": "main",
                            "name": "Main",
                            "updated_at": 1,
                            "overrides": {
                                "view_mode": "kanban",
                                "filter_state_by_view": {"inbox": {"view_mode": "list"}},
                            },
                        },
                        "other": {"id": "other", "name": "Other", "updated_at": 1, "overrides": {}},
                    },
                },
            }
        }
    )
    manager = make_manager(store)

    assert manager.get_global_settings()["view_mode"] == "kanban"
    assert manager.get_workspace("main").overrides == {
        "filter_state_by_view": {"inbox": {"view_mode": "list"}}
    }
    assert manager.active_workspace_id == "main"
    assert [ws.id for ws in manager.get_all_workspaces()] == ["main", "other"]
    assert manager.needs_save


def test_bootstrap_rejects_invalid_settings(make_manager) -> None:
    store = MemorySettingsStore({SETTINGS_KEY: {"view_mode": 3}})
    with pytest.raises(WorkspaceValidationError):
        make_manager(store)


def test_save_overrides_stores_minimal_difference(scenario_manager: WorkspaceManager) -> None:
    manager = scenario_manager
    b_id = _create_kanban_workspace(manager)

    assert manager.get_workspace(b_id).overrides == {"view_mode": "kanban"}
    global_settings = manager.get_global_settings()
    assert global_settings["view_mode"] == "list"
    assert global_settings["sort"] == "date"
    assert manager.get_effective_settings(b_id)["view_mode"] == "kanban"
    assert manager.get_effective_settings(b_id)["sort"] == "date"


def test_default_promotion_moves_values_between_layers(scenario_manager: WorkspaceManager) -> None:
    manager = scenario_manager
    old_default = manager.default_workspace_id
    b_id = _create_kanban_workspace(manager)

    run(manager.set_default_workspace(b_id))

    assert manager.default_workspace_id == b_id
    assert manager.get_global_settings()["view_mode"] == "kanban"
    assert manager.get_workspace(old_default).overrides == {"view_mode": "list"}
    assert manager.get_workspace(b_id).overrides == {}
    assert manager.get_all_workspaces()[0].id == b_id
    assert manager.get_effective_settings(old_default)["view_mode"] == "list"
    assert manager.get_effective_settings(old_default)["sort"] == "date"


def test_default_promotion_keeps_filter_state_local(scenario_manager: WorkspaceManager) -> None:
    manager = scenario_manager
    old_default = manager.default_workspace_id
    b_id = _create_kanban_workspace(manager)

    effective = manager.get_effective_settings(b_id)
    effective["filter_state_by_view"] = {"inbox": {"filters": {"tag": "b"}, "view_mode": "kanban"}}
    run(manager.save_overrides(b_id, effective))
    effective = manager.get_effective_settings(old_default)
    effective["filter_state_by_view"] = {"inbox": {"filters": {"tag": "a"}, "view_mode": "list"}}
    run(manager.save_overrides(old_default, effective))

    run(manager.set_default_workspace(b_id))

    assert "filter_state_by_view" not in manager.get_global_settings()
    assert manager.get_workspace(b_id).overrides == {
        "filter_state_by_view": {"inbox": {"filters": {"tag": "b"}, "view_mode": "kanban"}}
    }
    old = manager.get_effective_settings(old_default)
    assert old["filter_state_by_view"]["inbox"]["filters"] == {"tag": "a"}


def test_other_workspaces_are_normalised_after_promotion(scenario_manager: WorkspaceManager) -> None:
    manager = scenario_manager
    b_id = _create_kanban_workspace(manager)
    c = run(manager.create_workspace("C", base_workspace_id=b_id))
    assert manager.get_workspace(c.id).overrides == {"view_mode": "kanban"}

    run(manager.set_default_workspace(b_id))

    assert manager.get_workspace(c.id).overrides == {}
    assert manager.get_effective_settings(c.id)["view_mode"] == "kanban"


def test_deleting_active_workspace_switches_once(
    manager: WorkspaceManager, recorder
) -> None:
    c = run(manager.create_workspace("C"))
    run(manager.set_active_workspace(c.id))
    recorder.events.clear()

    run(manager.delete_workspace(c.id))

    assert manager.active_workspace_id == manager.default_workspace_id
    switches = recorder.of_type(WorkspaceEventType.SWITCHED)
    assert len(switches) == 1
    assert switches[0].previous_id == c.id
    assert switches[0].workspace_id == manager.default_workspace_id
    assert len(recorder.of_type(WorkspaceEventType.DELETED)) == 1
    assert manager.get_workspace(c.id) is None
    assert c.id not in [ws.id for ws in manager.get_all_workspaces()]


def test_delete_default_is_refused(manager: WorkspaceManager, notices, store) -> None:
    run(manager.delete_workspace(manager.default_workspace_id))
    assert len(manager.get_all_workspaces()) == 1
    assert notices.history[-1].level == logging.WARNING
    assert store.writes == []


def test_activate_unknown_workspace_falls_back_to_default(manager: WorkspaceManager, notices) -> None:
    c = run(manager.create_workspace("C"))
    run(manager.set_active_workspace(c.id))

    run(manager.set_active_workspace("missing"))

    assert manager.active_workspace_id == manager.default_workspace_id
    assert notices.history[-1].message == "Workspace not found. Using default workspace."


def test_unknown_ids_are_ignored(manager: WorkspaceManager, store, recorder) -> None:
    run(manager.set_default_workspace("missing"))
    run(manager.save_overrides("missing", {"view_mode": "kanban"}))
    run(manager.reset_overrides("missing"))
    run(manager.rename_workspace("missing", "Nope"))
    assert store.writes == []
    assert recorder.events == []


def test_create_from_custom_workspace_copies_overrides_and_style(manager: WorkspaceManager) -> None:
    source = run(manager.create_workspace("Source", icon="star", color="#ff0000"))
    effective = manager.get_effective_settings(source.id)
    effective["group"] = "project"
    run(manager.save_overrides(source.id, effective))

    clone = run(manager.create_workspace("Clone", base_workspace_id=source.id))
    plain = run(manager.create_workspace("Plain", base_workspace_id=manager.default_workspace_id))

    assert clone.overrides == {"group": "project"}
    assert (clone.icon, clone.color) == ("star", "#ff0000")
    assert plain.overrides == {}
    assert plain.icon is None and plain.color is None
    assert [ws.name for ws in manager.get_all_workspaces()] == ["Default", "Source", "Clone", "Plain"]


def test_create_notifies_with_base_id(manager: WorkspaceManager, recorder) -> None:
    workspace = run(manager.create_workspace("New"))
    (event,) = recorder.of_type(WorkspaceEventType.CREATED)
    assert event.workspace_id == workspace.id
    assert event.data == manager.default_workspace_id


def test_save_overrides_reports_changed_fields(manager: WorkspaceManager, recorder) -> None:
    workspace = run(manager.create_workspace("Work"))
    effective = manager.get_effective_settings(workspace.id)
    effective["view_mode"] = "gantt"
    effective["columns"] = ["content"]

    run(manager.save_overrides(workspace.id, effective))

    (event,) = recorder.of_type(WorkspaceEventType.OVERRIDES_SAVED)
    assert set(event.changed_fields) == {"view_mode", "columns"}
    assert len(recorder.of_type(WorkspaceEventType.SETTINGS_CHANGED)) == 1


def test_quiet_save_emits_nothing(manager: WorkspaceManager, recorder, store) -> None:
    workspace = run(manager.create_workspace("Work"))
    recorder.events.clear()
    effective = manager.get_effective_settings(workspace.id)
    effective["view_mode"] = "gantt"

    run(manager.save_overrides_quietly(workspace.id, effective))

    assert recorder.events == []
    assert manager.get_effective_settings(workspace.id)["view_mode"] == "gantt"
    assert store.writes_for(SETTINGS_KEY)[-1]["workspaces"]["by_id"][workspace.id]["overrides"] == {
        "view_mode": "gantt"
    }


def test_default_workspace_save_writes_through_to_globals(manager: WorkspaceManager) -> None:
    default_id = manager.default_workspace_id
    effective = manager.get_effective_settings(default_id)
    effective["view_mode"] = "calendar"
    effective["active_view_id"] = "forecast"

    run(manager.save_overrides(default_id, effective))

    assert manager.get_global_settings()["view_mode"] == "calendar"
    assert "active_view_id" not in manager.get_global_settings()
    assert manager.get_workspace(default_id).overrides == {"active_view_id": "forecast"}


def test_reset_overrides(manager: WorkspaceManager, recorder) -> None:
    workspace = run(manager.create_workspace("Work"))
    effective = manager.get_effective_settings(workspace.id)
    effective["view_mode"] = "gantt"
    run(manager.save_overrides(workspace.id, effective))

    run(manager.reset_overrides(workspace.id))
    run(manager.reset_overrides(manager.default_workspace_id))

    assert manager.get_workspace(workspace.id).overrides == {}
    assert manager.get_effective_settings(workspace.id)["view_mode"] == "list"
    assert [e.workspace_id for e in recorder.of_type(WorkspaceEventType.RESET)] == [workspace.id]


def test_rename_workspace(manager: WorkspaceManager, recorder) -> None:
    workspace = run(manager.create_workspace("Work"))
    run(manager.rename_workspace(workspace.id, "  Focus  ", icon="bolt"))

    renamed = manager.get_workspace(workspace.id)
    assert (renamed.name, renamed.icon) == ("Focus", "bolt")
    assert renamed.updated_at > workspace.updated_at
    assert recorder.of_type(WorkspaceEventType.RENAMED)[0].data == "Focus"

    with pytest.raises(WorkspaceValidationError):
        run(manager.rename_workspace(workspace.id, "   "))


def test_reorder_pins_default_first(manager: WorkspaceManager, store) -> None:
    a = run(manager.create_workspace("A"))
    b = run(manager.create_workspace("B"))
    default_id = manager.default_workspace_id

    run(manager.reorder_workspaces([b.id, "missing", default_id, b.id]))

    assert [ws.id for ws in manager.get_all_workspaces()] == [default_id, b.id, a.id]
    assert store.writes_for(SETTINGS_KEY)[-1]["workspaces"]["order"] == [default_id, b.id, a.id]


def test_update_global_settings(manager: WorkspaceManager, recorder) -> None:
    run(manager.update_global_settings({"lang": "de"}))
    assert manager.get_global_settings()["lang"] == "de"
    assert manager.get_effective_settings()["lang"] == "de"
    assert len(recorder.of_type(WorkspaceEventType.SETTINGS_CHANGED)) == 1

    with pytest.raises(WorkspaceValidationError):
        run(manager.update_global_settings({"view_mode": "kanban"}))
    with pytest.raises(WorkspaceValidationError):
        run(manager.update_global_settings({"lang": 5}))
    assert manager.get_global_settings()["lang"] == "de"


def test_persist_failure_keeps_memory_state(make_manager, failing_store, notices) -> None:
    manager = make_manager(failing_store)
    errors = []

    def on_error(event) -> None:
        errors.append(event)

    manager.add_listener(on_error, [WorkspaceEventType.ERROR])

    workspace = run(manager.create_workspace("Unsaved"))

    assert manager.get_workspace(workspace.id) is not None
    assert manager.needs_save
    assert notices.history[-1].level == logging.ERROR
    assert "may not survive a restart" in notices.history[-1].message
    assert len(errors) == 1
    assert str(errors[0].error) == "disk full"

    failing_store.fail = False
    assert run(manager.save()) is True
    assert not manager.needs_save


def test_listener_errors_do_not_propagate(manager: WorkspaceManager, caplog) -> None:
    def broken(event) -> None:
        raise RuntimeError("boom")

    manager.add_listener(broken)
    with caplog.at_level(logging.ERROR):
        run(manager.create_workspace("Work"))
    assert "boom" in caplog.text


def test_removed_listener_is_not_called(manager: WorkspaceManager) -> None:
    calls = 0

    def listener(event) -> None:
        nonlocal calls
        calls += 1

    manager.add_listener(listener)
    manager.remove_listener(listener)
    run(manager.create_workspace("Work"))
    assert calls == 0


def test_reads_see_mutation_before_write_completes(make_manager) -> None:
    store = GatedStore()
    manager = make_manager(store)

    async def scenario():
        store.gate = asyncio.Event()
        create = asyncio.create_task(manager.create_workspace("First"))
        await asyncio.sleep(0)
        created_id = manager.get_all_workspaces()[-1].id
        rename = asyncio.create_task(manager.rename_workspace(created_id, "Second"))
        await asyncio.sleep(0)
        seen = manager.get_workspace(created_id).name
        pending_writes = len(store.writes)
        store.gate.set()
        await asyncio.gather(create, rename)
        return created_id, seen, pending_writes

    created_id, seen, pending_writes = run(scenario())

    assert seen == "Second"
    assert pending_writes == 0
    names = [doc["workspaces"]["by_id"][created_id]["name"] for doc in store.writes_for(SETTINGS_KEY)]
    assert names == ["First", "Second"]


def test_state_survives_reload(make_manager, store) -> None:
    manager = make_manager(store)
    workspace = run(manager.create_workspace("Work", icon="star"))
    effective = manager.get_effective_settings(workspace.id)
    effective["kanban"] = {"group_by": "priority"}
    run(manager.save_overrides(workspace.id, effective))
    run(manager.set_active_workspace(workspace.id))

    reloaded = make_manager(store)

    assert reloaded.active_workspace_id == workspace.id
    assert reloaded.get_workspace(workspace.id).icon == "star"
    assert reloaded.get_effective_settings()["kanban"] == {"group_by": "priority"}
    assert not reloaded.needs_save


def test_remembered_workspace(make_manager, store) -> None:
    manager = make_manager(store)
    workspace = run(manager.create_workspace("Work"))
    run(manager.remember_workspace(workspace.id))
    assert store.load(LAST_ACTIVE_KEY) == {"workspace_id": workspace.id}

    assert make_manager(store).get_remembered_workspace_id() == workspace.id

    run(manager.delete_workspace(workspace.id))
    assert make_manager(store).get_remembered_workspace_id() is None


def test_lambda_listener_stays_registered(manager: WorkspaceManager) -> None:
    seen = []
    manager.add_listener(lambda event: seen.append(event.event_type))
    gc.collect()

    run(manager.create_workspace("B"))

    assert WorkspaceEventType.CREATED in seen


def test_bound_method_listener_does_not_keep_owner_alive(manager: WorkspaceManager) -> None:
    class Owner:
        def __init__(self) -> None:
            self.events = []

        def on_event(self, event) -> None:
            self.events.append(event)

    owner = Owner()
    manager.add_listener(owner.on_event)
    run(manager.create_workspace("B"))
    assert len(owner.events) == 1

    owner_ref = weakref.ref(owner)
    del owner
    gc.collect()

    assert owner_ref() is None
    run(manager.create_workspace("C"))


def test_cleanup_drops_listeners(manager: WorkspaceManager) -> None:
    seen = []
    manager.add_listener(seen.append)

    manager.cleanup()
    run(manager.create_workspace("B"))

    assert seen == []


def test_unbootstrapped_registry_raises_workspace_error() -> None:
    manager = WorkspaceManager.__new__(WorkspaceManager)
    manager._config = None

    with pytest.raises(WorkspaceError):
        manager.config


def test_overlapping_writes_reach_store_in_mutation_order(make_manager) -> None:
    store = GatedStore()
    manager = make_manager(store)

    async def scenario():
        store.gate = asyncio.Event()
        tasks = [asyncio.create_task(manager.create_workspace(f"W{i}")) for i in range(4)]
        await asyncio.sleep(0)
        store.gate.set()
        await asyncio.gather(*tasks)

    run(scenario())

    counts = [len(doc["workspaces"]["order"]) for doc in store.writes_for(SETTINGS_KEY)]
    assert counts == sorted(counts)
    assert counts[-1] == 5
