#novel_orchestrator/finalization.py
# -*- coding: utf-8 -*-
"""
定稿章节、扩写章节，以及全局摘要的重新生成
"""
import logging

from llm_adapters import create_llm_adapter_from_config
from prompt_definitions import (
    chapter_optimize_prompt,
    summary_prompt,
    update_character_state_prompt,
    global_summary_prompt,
    enrich_chapter_prompt
)
from chapter_directory_parser import get_chapter_info_from_blueprint, format_chapter_outline
from novel_errors import PrerequisiteMissing
from novel_orchestrator.common import invoke_with_cleaning
from novel_orchestrator.chapter import check_chapter_number, get_previous_chapter_excerpt
from novel_orchestrator.project_store import (
    ARCHITECTURE_FINAL, BLUEPRINT, CHARACTER_STATE, GLOBAL_SUMMARY, chapter_draft_slot
)
from novel_orchestrator.vectorstore_utils import ingest_text


def finalize_chapter(
    store,
    index,
    project_id: str,
    chapter_number: int,
    llm_config: dict
) -> dict:
    """
    对指定章节做最终处理：润色正文、更新全局摘要、更新角色状态、写入知识库。
    三次模型调用全部成功后才写回，任何一步失败都不会留下部分更新。
    重复定稿会在已润色的正文上再润色一次。
    """
    check_chapter_number(chapter_number)
    with store.project_lock(project_id):
        info = store.load_info(project_id)
        draft_slot = chapter_draft_slot(chapter_number)
        chapter_text = store.read_text(project_id, draft_slot).strip()
        if not chapter_text:
            raise PrerequisiteMissing(f"chapter_{chapter_number}.draft", project_id)

        architecture_text = store.read_text(project_id, ARCHITECTURE_FINAL)
        blueprint_text = store.read_text(project_id, BLUEPRINT)
        chapter_info = get_chapter_info_from_blueprint(blueprint_text, chapter_number)
        old_global_summary = store.read_text(project_id, GLOBAL_SUMMARY)
        old_character_state = store.read_text(project_id, CHARACTER_STATE)

        llm_adapter = create_llm_adapter_from_config(llm_config)

        # 润色正文
        prompt_optimize = chapter_optimize_prompt.format(
            chapter_outline=format_chapter_outline(chapter_info),
            novel_architecture=architecture_text,
            previous_chapter_excerpt=get_previous_chapter_excerpt(store, project_id, chapter_number),
            chapter_text=chapter_text,
            word_number=info["word_number"]
        )
        optimized_text = invoke_with_cleaning(llm_adapter, prompt_optimize)

        # 更新全局摘要
        prompt_summary = summary_prompt.format(
            chapter_text=optimized_text,
            global_summary=old_global_summary
        )
        new_global_summary = invoke_with_cleaning(llm_adapter, prompt_summary)

        # 更新角色状态
        prompt_char_state = update_character_state_prompt.format(
            chapter_text=optimized_text,
            old_state=old_character_state
        )
        new_char_state = invoke_with_cleaning(llm_adapter, prompt_char_state)

        store.write_text(project_id, draft_slot, optimized_text)
        store.write_text(project_id, GLOBAL_SUMMARY, new_global_summary)
        store.write_text(project_id, CHARACTER_STATE, new_char_state)
        store.save_info(project_id, info)

    ingest_text(index, project_id, optimized_text, "chapter", chapter_number=chapter_number)
    logging.info(f"Chapter {chapter_number} has been finalized.")
    return {"global_summary": new_global_summary, "character_state": new_char_state}


def enrich_chapter_text(chapter_text: str, word_number: int, llm_config: dict) -> str:
    """
    对章节文本进行扩写，使其更接近 word_number 字数，保持剧情连贯。
    """
    llm_adapter = create_llm_adapter_from_config(llm_config)
    prompt = enrich_chapter_prompt.format(word_number=word_number, chapter_text=chapter_text)
    return invoke_with_cleaning(llm_adapter, prompt)


def generate_global_summary(
    store,
    index,
    project_id: str,
    llm_config: dict,
    user_guidance: str = ""
) -> str:
    """依据架构与章节目录重新生成全局摘要，覆盖原有内容。"""
    with store.project_lock(project_id):
        store.load_info(project_id)
        architecture_text = store.read_text(project_id, ARCHITECTURE_FINAL)
        if not architecture_text.strip():
            raise PrerequisiteMissing("architecture", project_id)
        blueprint_text = store.read_text(project_id, BLUEPRINT)

        llm_adapter = create_llm_adapter_from_config(llm_config)
        prompt = global_summary_prompt.format(
            novel_architecture=architecture_text,
            chapter_blueprint=blueprint_text,
            user_guidance=user_guidance
        )
        global_summary = invoke_with_cleaning(llm_adapter, prompt)
        store.write_text(project_id, GLOBAL_SUMMARY, global_summary)
        logging.info(f"Global summary regenerated for project {project_id}.")

    ingest_text(index, project_id, global_summary, "global_summary")
    return global_summary
