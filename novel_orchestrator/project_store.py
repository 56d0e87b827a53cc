#novel_orchestrator/project_store.py
# -*- coding: utf-8 -*-
"""
项目产物的持久化：每个项目一个目录，每个产物一个“槽位”文件，整体覆盖写。
"""
import os
import re
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone

from novel_errors import ProjectNotFound
from utils import (
    read_file, save_string_to_txt, load_data_from_json, save_data_to_json, remove_path
)

INFO = "info"
ARCHITECTURE_PARTIAL = "architecture_partial"
ARCHITECTURE_FINAL = "architecture_final"
BLUEPRINT = "blueprint"
CHARACTER_STATE = "character_state"
GLOBAL_SUMMARY = "global_summary"

SLOT_FILES = {
    INFO: "info.json",
    ARCHITECTURE_PARTIAL: "partial_architecture.json",
    ARCHITECTURE_FINAL: "Novel_architecture.txt",
    BLUEPRINT: "Novel_directory.txt",
    CHARACTER_STATE: "character_state.txt",
    GLOBAL_SUMMARY: "global_summary.txt",
}

CHAPTERS_DIR = "chapters"
_chapter_slot_pattern = re.compile(r'^chapter_(\d+)\.(draft|outline)$')
_chapter_file_pattern = re.compile(r'^chapter_(\d+)\.txt$')
_project_id_pattern = re.compile(r'^[A-Za-z0-9_-]+$')

# 状态只能前进
STATUS_CREATED = "created"
STATUS_ARCHITECTURE_GENERATED = "architecture_generated"
STATUS_BLUEPRINT_GENERATED = "blueprint_generated"
STATUS_ORDER = [STATUS_CREATED, STATUS_ARCHITECTURE_GENERATED, STATUS_BLUEPRINT_GENERATED]


def chapter_draft_slot(chapter_number: int) -> str:
    return f"chapter_{chapter_number}.draft"


def chapter_outline_slot(chapter_number: int) -> str:
    return f"chapter_{chapter_number}.outline"


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProjectStore:
    """
    以 (project_id, slot) 为键的读写面，底层是 novels_path/<project_id>/ 下的文件。
    """

    def __init__(self, novels_path: str):
        self.novels_path = novels_path
        self._locks = {}
        self._locks_guard = threading.Lock()

    # ---------- 路径 ----------
    def project_dir(self, project_id: str) -> str:
        if not project_id or not _project_id_pattern.match(str(project_id)):
            raise ProjectNotFound(str(project_id))
        return os.path.join(self.novels_path, project_id)

    def chapters_dir(self, project_id: str) -> str:
        return os.path.join(self.project_dir(project_id), CHAPTERS_DIR)

    def slot_path(self, project_id: str, slot: str) -> str:
        if slot in SLOT_FILES:
            return os.path.join(self.project_dir(project_id), SLOT_FILES[slot])
        m = _chapter_slot_pattern.match(slot)
        if not m:
            raise ValueError(f"Unknown artifact slot: {slot}")
        prefix = "chapter" if m.group(2) == "draft" else "outline"
        return os.path.join(self.chapters_dir(project_id), f"{prefix}_{m.group(1)}.txt")

    # ---------- 锁 ----------
    @contextmanager
    def project_lock(self, project_id: str):
        """同一项目内的产物写入串行化（可重入）。"""
        with self._locks_guard:
            lock = self._locks.setdefault(project_id, threading.RLock())
        with lock:
            yield

    def discard_lock(self, project_id: str):
        """项目删除后丢弃其锁。"""
        with self._locks_guard:
            self._locks.pop(project_id, None)

    # ---------- 项目 ----------
    def project_exists(self, project_id: str) -> bool:
        try:
            return os.path.exists(self.slot_path(project_id, INFO))
        except ProjectNotFound:
            return False

    def init_project(self, info: dict):
        project_id = info["id"]
        os.makedirs(self.chapters_dir(project_id), exist_ok=True)
        self.write_json(project_id, INFO, info)

    def load_info(self, project_id: str) -> dict:
        info = load_data_from_json(self.slot_path(project_id, INFO))
        if not info:
            raise ProjectNotFound(project_id)
        return info

    def save_info(self, project_id: str, info: dict):
        info["updated_at"] = utc_now()
        self.write_json(project_id, INFO, info)

    def advance_status(self, project_id: str, new_status: str) -> dict:
        """仅当新状态位于当前状态之后时才更新。"""
        info = self.load_info(project_id)
        current = info.get("status", STATUS_CREATED)
        current_rank = STATUS_ORDER.index(current) if current in STATUS_ORDER else 0
        if STATUS_ORDER.index(new_status) > current_rank:
            info["status"] = new_status
            logging.info(f"Project {project_id} status: {current} -> {new_status}")
        self.save_info(project_id, info)
        return info

    def list_project_ids(self):
        if not os.path.isdir(self.novels_path):
            return []
        return sorted(
            name for name in os.listdir(self.novels_path)
            if _project_id_pattern.match(name) and self.project_exists(name)
        )

    def delete_project_dir(self, project_id: str) -> bool:
        return remove_path(self.project_dir(project_id))

    # ---------- 槽位读写 ----------
    def exists(self, project_id: str, slot: str) -> bool:
        return os.path.exists(self.slot_path(project_id, slot))

    def read_text(self, project_id: str, slot: str) -> str:
        return read_file(self.slot_path(project_id, slot))

    def write_text(self, project_id: str, slot: str, text: str):
        save_string_to_txt(text, self.slot_path(project_id, slot))

    def read_json(self, project_id: str, slot: str):
        return load_data_from_json(self.slot_path(project_id, slot))

    def write_json(self, project_id: str, slot: str, data):
        save_data_to_json(data, self.slot_path(project_id, slot))

    def delete_slot(self, project_id: str, slot: str) -> bool:
        return remove_path(self.slot_path(project_id, slot))

    def drafted_chapter_numbers(self, project_id: str):
        chapters_dir = self.chapters_dir(project_id)
        if not os.path.isdir(chapters_dir):
            return []
        numbers = []
        for name in os.listdir(chapters_dir):
            m = _chapter_file_pattern.match(name)
            if m:
                numbers.append(int(m.group(1)))
        return sorted(numbers)
