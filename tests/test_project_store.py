import os
import threading
import time

import pytest

from novel_errors import ProjectNotFound, StorageFailure
from novel_orchestrator import (
    create_project,
    get_project_info,
    list_projects,
    delete_project,
    get_architecture,
    get_global_summary,
)
from novel_orchestrator.project_store import (
    BLUEPRINT,
    GLOBAL_SUMMARY,
    STATUS_ARCHITECTURE_GENERATED,
    STATUS_BLUEPRINT_GENERATED,
    STATUS_CREATED,
    chapter_draft_slot,
    chapter_outline_slot,
)


def test_create_project_layout(store, index, project, tmp_path):
    project_dir = tmp_path / "novels" / project["id"]
    assert (project_dir / "info.json").is_file()
    assert (project_dir / "chapters").is_dir()
    assert (project_dir / "global_summary.txt").read_text(encoding="utf-8") == ""
    assert index.index_exists(project["id"])
    assert project["status"] == STATUS_CREATED
    assert project["num_chapters"] == 3
    assert get_project_info(store, project["id"]) == project


@pytest.mark.parametrize("num_chapters,word_number", [(0, 1000), (3, 0), ("x", 1000)])
def test_create_project_rejects_bad_counts(store, index, num_chapters, word_number):
    with pytest.raises(ValueError):
        create_project(store, index, "标题", "类型", "主题", num_chapters, word_number)


def test_list_projects_newest_first(store, index):
    first = create_project(store, index, "一", "", "", 1, 1000)
    time.sleep(0.01)
    second = create_project(store, index, "二", "", "", 1, 1000)
    assert [p["id"] for p in list_projects(store)] == [second["id"], first["id"]]


def test_unknown_project(store):
    with pytest.raises(ProjectNotFound):
        get_project_info(store, "does-not-exist")
    with pytest.raises(ProjectNotFound):
        get_architecture(store, "does-not-exist")
    with pytest.raises(ProjectNotFound):
        store.slot_path("../escape", BLUEPRINT)


def test_absent_artifacts_read_as_empty(store, project):
    assert get_architecture(store, project["id"]) == ""
    assert get_global_summary(store, project["id"]) == ""


def test_slot_paths(store, project, tmp_path):
    base = tmp_path / "novels" / project["id"]
    assert store.slot_path(project["id"], chapter_draft_slot(2)) == str(base / "chapters" / "chapter_2.txt")
    assert store.slot_path(project["id"], chapter_outline_slot(2)) == str(base / "chapters" / "outline_2.txt")
    with pytest.raises(ValueError):
        store.slot_path(project["id"], "not_a_slot")


def test_write_overwrites_and_leaves_no_temp_files(store, project, tmp_path):
    store.write_text(project["id"], GLOBAL_SUMMARY, "第一版")
    store.write_text(project["id"], GLOBAL_SUMMARY, "第二版")
    assert store.read_text(project["id"], GLOBAL_SUMMARY) == "第二版"
    leftovers = [n for n in os.listdir(tmp_path / "novels" / project["id"]) if n.startswith(".tmp_")]
    assert leftovers == []


def test_failed_write_keeps_previous_content(store, project, monkeypatch):
    store.write_text(project["id"], GLOBAL_SUMMARY, "原内容")

    def broken_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", broken_replace)
    with pytest.raises(StorageFailure):
        store.write_text(project["id"], GLOBAL_SUMMARY, "新内容")
    monkeypatch.undo()
    assert store.read_text(project["id"], GLOBAL_SUMMARY) == "原内容"


def test_status_only_moves_forward(store, project):
    pid = project["id"]
    assert store.advance_status(pid, STATUS_BLUEPRINT_GENERATED)["status"] == STATUS_BLUEPRINT_GENERATED
    assert store.advance_status(pid, STATUS_ARCHITECTURE_GENERATED)["status"] == STATUS_BLUEPRINT_GENERATED


def test_delete_project_removes_directory_and_index(store, index, project, tmp_path):
    pid = project["id"]
    index.add_documents(pid, ["灯塔"], [{"type": "knowledge"}])
    assert delete_project(store, index, pid) is True
    assert not (tmp_path / "novels" / pid).exists()
    assert index.search(pid, "灯塔") == []
    assert list_projects(store) == []
    assert delete_project(store, index, pid) is False


def test_project_lock_serialises_writers(store, project):
    pid = project["id"]
    order = []

    def writer(tag):
        with store.project_lock(pid):
            order.append(f"{tag}-start")
            time.sleep(0.05)
            order.append(f"{tag}-end")

    threads = [threading.Thread(target=writer, args=(t,)) for t in ("a", "b")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert order[0][0] == order[1][0]
    assert order[2][0] == order[3][0]


def test_project_lock_is_reentrant(store, project):
    with store.project_lock(project["id"]):
        with store.project_lock(project["id"]):
            store.write_text(project["id"], GLOBAL_SUMMARY, "ok")
    assert store.read_text(project["id"], GLOBAL_SUMMARY) == "ok"


def test_delete_project_drops_lock_entries(store, index, project):
    pid = project["id"]
    index.add_documents(pid, ["灯塔"], [{"type": "knowledge"}])
    with store.project_lock(pid):
        pass
    assert pid in store._locks
    assert pid in index._locks

    delete_project(store, index, pid)

    assert pid not in store._locks
    assert pid not in index._locks
