#novel_orchestrator/project.py
# -*- coding: utf-8 -*-
"""
小说项目的创建、查询、删除，以及各产物的只读访问
"""
import logging
import uuid

from novel_errors import ProjectNotFound
from novel_orchestrator.project_store import (
    ProjectStore, utc_now, STATUS_CREATED,
    ARCHITECTURE_FINAL, BLUEPRINT, CHARACTER_STATE, GLOBAL_SUMMARY
)


def _positive_int(value, name: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if number < 1:
        raise ValueError(f"{name} must be >= 1, got {number}")
    return number


def create_project(
    store: ProjectStore,
    index,
    title: str,
    genre: str,
    topic: str,
    num_chapters: int,
    word_number: int
) -> dict:
    """
    新建项目：目录、info.json、空的全局摘要以及空知识库。
    """
    if not title or not title.strip():
        raise ValueError("title must not be empty")
    now = utc_now()
    info = {
        "id": uuid.uuid4().hex,
        "title": title.strip(),
        "genre": genre or "",
        "topic": topic or "",
        "num_chapters": _positive_int(num_chapters, "num_chapters"),
        "word_number": _positive_int(word_number, "word_number"),
        "status": STATUS_CREATED,
        "created_at": now,
        "updated_at": now,
    }
    project_id = info["id"]
    with store.project_lock(project_id):
        store.init_project(info)
        store.write_text(project_id, GLOBAL_SUMMARY, "")
    if index is not None:
        try:
            index.create_index(project_id)
        except Exception as e:
            logging.warning(f"Failed to create vector store for project {project_id}: {e}")
    logging.info(f"Created project: {info['title']} (ID: {project_id})")
    return info


def get_project_info(store: ProjectStore, project_id: str) -> dict:
    return store.load_info(project_id)


def list_projects(store: ProjectStore) -> list:
    """所有项目信息，按创建时间倒序。"""
    projects = []
    for project_id in store.list_project_ids():
        try:
            projects.append(store.load_info(project_id))
        except ProjectNotFound:
            continue
    projects.sort(key=lambda p: p.get("created_at", ""), reverse=True)
    return projects


def delete_project(store: ProjectStore, index, project_id: str) -> bool:
    """删除项目目录及其知识库，项目不存在时返回 False。"""
    if not store.project_exists(project_id):
        return False
    with store.project_lock(project_id):
        if index is not None:
            index.delete_index(project_id)
        store.delete_project_dir(project_id)
    store.discard_lock(project_id)
    logging.info(f"Deleted project: {project_id}")
    return True


def _read_artifact(store: ProjectStore, project_id: str, slot: str) -> str:
    if not store.project_exists(project_id):
        raise ProjectNotFound(project_id)
    return store.read_text(project_id, slot)


def get_architecture(store: ProjectStore, project_id: str) -> str:
    return _read_artifact(store, project_id, ARCHITECTURE_FINAL)


def get_blueprint(store: ProjectStore, project_id: str) -> str:
    return _read_artifact(store, project_id, BLUEPRINT)


def get_character_state(store: ProjectStore, project_id: str) -> str:
    return _read_artifact(store, project_id, CHARACTER_STATE)


def get_global_summary(store: ProjectStore, project_id: str) -> str:
    return _read_artifact(store, project_id, GLOBAL_SUMMARY)
