#novel_orchestrator/chapter.py
# -*- coding: utf-8 -*-
"""
章节草稿生成及获取历史章节文本、当前章节摘要等
"""
import logging

from llm_adapters import create_llm_adapter_from_config
from prompt_definitions import (
    first_chapter_system_prompt,
    first_chapter_draft_prompt,
    next_chapter_draft_prompt,
    summarize_recent_chapters_prompt
)
from chapter_directory_parser import get_chapter_info_from_blueprint, format_chapter_outline
from novel_errors import PrerequisiteMissing
from novel_orchestrator.common import invoke_with_cleaning
from novel_orchestrator.project_store import (
    ARCHITECTURE_FINAL, BLUEPRINT, CHARACTER_STATE, GLOBAL_SUMMARY,
    chapter_draft_slot, chapter_outline_slot
)
from novel_orchestrator.vectorstore_utils import (
    get_relevant_context_from_vector_store, NO_KNOWLEDGE_TEXT
)

PREVIOUS_EXCERPT_LENGTH = 800
MAX_COMBINED_LENGTH = 4000
SUMMARY_MARKERS = (
    "当前章节摘要:",
    "当前章节摘要：",
    "章节摘要:",
    "本章摘要:",
)


def check_chapter_number(chapter_number) -> int:
    if isinstance(chapter_number, bool) or not isinstance(chapter_number, int) or chapter_number < 1:
        raise ValueError(f"chapter_number must be a positive integer, got {chapter_number!r}")
    return chapter_number


def get_last_n_chapters_text(store, project_id: str, current_chapter_num: int, n: int = 3) -> list:
    """
    获取 current_chapter_num 之前最近 n 章中已存在的章节文本（按章号升序）。
    """
    texts = []
    start_chap = max(1, current_chapter_num - n)
    for c in range(start_chap, current_chapter_num):
        text = store.read_text(project_id, chapter_draft_slot(c)).strip()
        if text:
            texts.append(text)
    return texts


def get_previous_chapter_excerpt(store, project_id: str, chapter_number: int,
                                 length: int = PREVIOUS_EXCERPT_LENGTH) -> str:
    """上一章（chapter_number - 1）结尾的最多 length 个字符。"""
    if chapter_number <= 1:
        return ""
    previous_text = store.read_text(project_id, chapter_draft_slot(chapter_number - 1))
    return previous_text[-length:]


def extract_summary_from_response(response_text: str) -> str:
    """从响应文本中提取摘要部分，找不到标记时返回完整响应"""
    if not response_text:
        return ""
    for marker in SUMMARY_MARKERS:
        if marker in response_text:
            return response_text.split(marker, 1)[1].strip()
    return response_text.strip()


def summarize_recent_chapters(
    llm_adapter,
    chapters_text_list: list,
    novel_number: int,
    chapter_info: dict,
    next_chapter_info: dict
) -> str:
    """
    根据前几章内容生成当前章节的精准摘要。
    没有可用的前文时不调用模型，直接返回空字符串。
    """
    combined_text = "\n".join(chapters_text_list).strip()
    if not combined_text:
        return ""
    if len(combined_text) > MAX_COMBINED_LENGTH:
        combined_text = combined_text[-MAX_COMBINED_LENGTH:]

    prompt = summarize_recent_chapters_prompt.format(
        combined_text=combined_text,
        novel_number=novel_number,
        chapter_title=chapter_info["chapter_title"],
        chapter_role=chapter_info["chapter_role"],
        chapter_purpose=chapter_info["chapter_purpose"],
        suspense_level=chapter_info["suspense_level"],
        foreshadowing=chapter_info["foreshadowing"],
        plot_twist_level=chapter_info["plot_twist_level"],
        chapter_summary=chapter_info["chapter_summary"],
        next_chapter_number=next_chapter_info["chapter_number"],
        next_chapter_title=next_chapter_info["chapter_title"],
        next_chapter_role=next_chapter_info["chapter_role"],
        next_chapter_purpose=next_chapter_info["chapter_purpose"],
        next_chapter_summary=next_chapter_info["chapter_summary"]
    )
    response_text = invoke_with_cleaning(llm_adapter, prompt)
    return extract_summary_from_response(response_text)


def build_retrieval_query(chapter_info: dict, characters_involved: str = "",
                          key_items: str = "", scene_location: str = "") -> str:
    parts = [
        chapter_info.get("chapter_title", ""),
        chapter_info.get("chapter_summary", ""),
        characters_involved,
        key_items,
        scene_location,
    ]
    return " ".join(p.strip() for p in parts if p and p.strip())


def get_knowledge_context(index, project_id: str, query: str) -> str:
    """知识库检索，任何失败都只记录日志并返回占位文本。"""
    if index is None:
        return NO_KNOWLEDGE_TEXT
    try:
        context = get_relevant_context_from_vector_store(index, project_id, query)
    except Exception as e:
        logging.warning(f"Knowledge retrieval failed for project {project_id}: {e}")
        return NO_KNOWLEDGE_TEXT
    return context if context.strip() else NO_KNOWLEDGE_TEXT


def build_chapter_prompt(
    store,
    index,
    project_id: str,
    chapter_number: int,
    llm_adapter,
    user_guidance: str = "",
    characters_involved: str = "",
    key_items: str = "",
    scene_location: str = "",
    time_constraint: str = ""
):
    """
    组装章节草稿提示词，返回 (prompt, system_message, chapter_info)。
    第一章只依赖架构与目录；后续章节还会汇总前文、读取角色状态并检索知识库。
    """
    info = store.load_info(project_id)
    architecture_text = store.read_text(project_id, ARCHITECTURE_FINAL)
    if not architecture_text.strip():
        raise PrerequisiteMissing("architecture", project_id)
    blueprint_text = store.read_text(project_id, BLUEPRINT)
    if not blueprint_text.strip():
        raise PrerequisiteMissing("blueprint", project_id)

    chapter_info = get_chapter_info_from_blueprint(blueprint_text, chapter_number)
    if chapter_info["is_fallback"]:
        logging.warning(f"Chapter {chapter_number} not found in blueprint, using defaults.")

    chapter_fields = {
        "novel_number": chapter_number,
        "chapter_title": chapter_info["chapter_title"],
        "chapter_role": chapter_info["chapter_role"],
        "chapter_purpose": chapter_info["chapter_purpose"],
        "suspense_level": chapter_info["suspense_level"],
        "foreshadowing": chapter_info["foreshadowing"],
        "plot_twist_level": chapter_info["plot_twist_level"],
        "chapter_summary": chapter_info["chapter_summary"],
        "word_number": info["word_number"],
        "characters_involved": characters_involved,
        "key_items": key_items,
        "scene_location": scene_location,
        "time_constraint": time_constraint,
        "user_guidance": user_guidance,
    }

    if chapter_number == 1:
        prompt_text = first_chapter_draft_prompt.format(
            novel_setting=architecture_text,
            **chapter_fields
        )
        return prompt_text, first_chapter_system_prompt, chapter_info

    next_chapter_info = get_chapter_info_from_blueprint(blueprint_text, chapter_number + 1)
    recent_texts = get_last_n_chapters_text(store, project_id, chapter_number, n=3)
    short_summary = summarize_recent_chapters(
        llm_adapter, recent_texts, chapter_number, chapter_info, next_chapter_info
    )

    retrieval_query = build_retrieval_query(chapter_info, characters_involved, key_items, scene_location)
    filtered_context = get_knowledge_context(index, project_id, retrieval_query)

    prompt_text = next_chapter_draft_prompt.format(
        global_summary=store.read_text(project_id, GLOBAL_SUMMARY),
        previous_chapter_excerpt=get_previous_chapter_excerpt(store, project_id, chapter_number),
        character_state=store.read_text(project_id, CHARACTER_STATE),
        short_summary=short_summary,
        next_chapter_number=next_chapter_info["chapter_number"],
        next_chapter_title=next_chapter_info["chapter_title"],
        next_chapter_role=next_chapter_info["chapter_role"],
        next_chapter_purpose=next_chapter_info["chapter_purpose"],
        next_chapter_suspense_level=next_chapter_info["suspense_level"],
        next_chapter_foreshadowing=next_chapter_info["foreshadowing"],
        next_chapter_plot_twist_level=next_chapter_info["plot_twist_level"],
        next_chapter_summary=next_chapter_info["chapter_summary"],
        filtered_context=filtered_context,
        **chapter_fields
    )
    return prompt_text, None, chapter_info


def generate_chapter_draft(
    store,
    index,
    project_id: str,
    chapter_number: int,
    llm_config: dict,
    user_guidance: str = "",
    characters_involved: str = "",
    key_items: str = "",
    scene_location: str = "",
    time_constraint: str = ""
) -> dict:
    """
    根据 chapter_number 判断是否为第一章。
    - 若是第一章，则使用 first_chapter_draft_prompt（附带系统提示）
    - 否则使用 next_chapter_draft_prompt
    最终将生成文本存入 chapters/chapter_{n}.txt，大纲存入 chapters/outline_{n}.txt。
    """
    check_chapter_number(chapter_number)
    with store.project_lock(project_id):
        llm_adapter = create_llm_adapter_from_config(llm_config)
        prompt_text, system_message, chapter_info = build_chapter_prompt(
            store, index, project_id, chapter_number, llm_adapter,
            user_guidance=user_guidance,
            characters_involved=characters_involved,
            key_items=key_items,
            scene_location=scene_location,
            time_constraint=time_constraint
        )

        chapter_content = invoke_with_cleaning(llm_adapter, prompt_text, system_message=system_message)
        outline = format_chapter_outline(chapter_info)

        store.write_text(project_id, chapter_draft_slot(chapter_number), chapter_content)
        store.write_text(project_id, chapter_outline_slot(chapter_number), outline)

    logging.info(f"[Draft] Chapter {chapter_number} generated as a draft.")
    return {"content": chapter_content, "outline": outline}


def get_chapter(store, project_id: str, chapter_number: int) -> dict:
    check_chapter_number(chapter_number)
    store.load_info(project_id)
    return {
        "number": chapter_number,
        "content": store.read_text(project_id, chapter_draft_slot(chapter_number)),
        "outline": store.read_text(project_id, chapter_outline_slot(chapter_number)),
    }


def list_chapters(store, project_id: str) -> list:
    """
    列出 1..num_chapters 的章节（以及超出计划的已写章节），标记是否已有正文。
    """
    info = store.load_info(project_id)
    drafted = set(store.drafted_chapter_numbers(project_id))
    numbers = sorted(set(range(1, info["num_chapters"] + 1)) | drafted)
    return [
        {
            "number": n,
            "outline": store.read_text(project_id, chapter_outline_slot(n)),
            "has_content": n in drafted,
        }
        for n in numbers
    ]


def save_chapter_content(store, project_id: str, chapter_number: int, content: str):
    """手动编辑后的章节正文整体覆盖保存。"""
    check_chapter_number(chapter_number)
    with store.project_lock(project_id):
        store.load_info(project_id)
        store.write_text(project_id, chapter_draft_slot(chapter_number), content)
    logging.info(f"Chapter {chapter_number} content saved for project {project_id}.")
