#novel_orchestrator/blueprint.py
# -*- coding: utf-8 -*-
"""
章节蓝图生成（分块 + 断点续跑）
"""
import logging

from llm_adapters import create_llm_adapter_from_config
from prompt_definitions import chapter_blueprint_prompt, chunked_chapter_blueprint_prompt
from chapter_directory_parser import limit_chapter_blueprint, max_chapter_number
from novel_errors import PrerequisiteMissing
from novel_orchestrator.common import invoke_with_cleaning
from novel_orchestrator.project_store import (
    ARCHITECTURE_FINAL, BLUEPRINT, STATUS_BLUEPRINT_GENERATED
)
from novel_orchestrator.vectorstore_utils import ingest_text


def compute_chunk_size(number_of_chapters: int, max_tokens: int) -> int:
    """
    基于“每章约100 tokens”的粗略估算，
    再结合当前max_tokens，计算分块大小：
      chunk_size = (floor(max_tokens/100/10)*10) - 10
    并确保 chunk_size 不会小于1或大于实际章节数。
    """
    tokens_per_chapter = 100.0
    ratio = max_tokens / tokens_per_chapter
    ratio_rounded_to_10 = int(ratio // 10) * 10
    chunk_size = ratio_rounded_to_10 - 10
    if chunk_size < 1:
        chunk_size = 1
    if chunk_size > number_of_chapters:
        chunk_size = number_of_chapters
    return chunk_size


def _generate_chunks(store, project_id, llm_adapter, architecture_text, blueprint_text,
                     start, number_of_chapters, chunk_size, user_guidance):
    current_start = start
    while current_start <= number_of_chapters:
        current_end = min(current_start + chunk_size - 1, number_of_chapters)
        chunk_prompt = chunked_chapter_blueprint_prompt.format(
            novel_architecture=architecture_text,
            chapter_list=limit_chapter_blueprint(blueprint_text, 100),  # 只保留最近100章
            number_of_chapters=number_of_chapters,
            n=current_start,
            m=current_end,
            user_guidance=user_guidance
        )
        logging.info(f"Generating chapters [{current_start}..{current_end}] in a chunk...")
        chunk_result = invoke_with_cleaning(llm_adapter, chunk_prompt)

        if blueprint_text.strip():
            blueprint_text = blueprint_text.strip() + "\n\n" + chunk_result.strip()
        else:
            blueprint_text = chunk_result.strip()
        # 实时写入，以免中途失败造成丢失
        store.write_text(project_id, BLUEPRINT, blueprint_text)
        current_start = current_end + 1
    return blueprint_text


def Chapter_blueprint_generate(
    store,
    index,
    project_id: str,
    llm_config: dict,
    user_guidance: str = "",
    overwrite: bool = False
) -> str:
    """
    若 Novel_directory.txt 已有内容，则解析其中最大章号，从下一章继续分块生成；
      传入时仅保留最近100章目录，避免prompt过长。
    否则：
      - 若章节数 <= chunk_size，直接一次性生成
      - 若章节数 > chunk_size，进行分块生成
    overwrite=True 时忽略已有目录，从头生成。
    """
    with store.project_lock(project_id):
        info = store.load_info(project_id)
        architecture_text = store.read_text(project_id, ARCHITECTURE_FINAL).strip()
        if not architecture_text:
            raise PrerequisiteMissing("architecture", project_id)

        number_of_chapters = info["num_chapters"]
        chunk_size = compute_chunk_size(number_of_chapters, int(llm_config.get("max_tokens", 4096)))
        logging.info(f"Number of chapters = {number_of_chapters}, computed chunk_size = {chunk_size}.")

        existing_blueprint = "" if overwrite else store.read_text(project_id, BLUEPRINT).strip()
        llm_adapter = create_llm_adapter_from_config(llm_config)

        if existing_blueprint:
            max_existing_chap = max_chapter_number(existing_blueprint)
            logging.info(f"Existing blueprint indicates up to chapter {max_existing_chap} has been generated.")
            if max_existing_chap >= number_of_chapters:
                logging.info("All chapters already exist in the blueprint, nothing to generate.")
                store.advance_status(project_id, STATUS_BLUEPRINT_GENERATED)
                return existing_blueprint
            blueprint_text = _generate_chunks(
                store, project_id, llm_adapter, architecture_text, existing_blueprint,
                max_existing_chap + 1, number_of_chapters, chunk_size, user_guidance
            )
        elif chunk_size >= number_of_chapters:
            prompt = chapter_blueprint_prompt.format(
                novel_architecture=architecture_text,
                number_of_chapters=number_of_chapters,
                user_guidance=user_guidance
            )
            blueprint_text = invoke_with_cleaning(llm_adapter, prompt)
            store.write_text(project_id, BLUEPRINT, blueprint_text)
            logging.info("Novel_directory.txt (chapter blueprint) has been generated successfully (single-shot).")
        else:
            logging.info("Will generate chapter blueprint in chunked mode from scratch.")
            blueprint_text = _generate_chunks(
                store, project_id, llm_adapter, architecture_text, "",
                1, number_of_chapters, chunk_size, user_guidance
            )
            logging.info("Novel_directory.txt (chapter blueprint) has been generated successfully (chunked).")

        store.advance_status(project_id, STATUS_BLUEPRINT_GENERATED)

    ingest_text(index, project_id, blueprint_text, "blueprint")
    return blueprint_text
