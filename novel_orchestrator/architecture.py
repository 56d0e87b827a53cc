#novel_orchestrator/architecture.py
# -*- coding: utf-8 -*-
"""
小说总体架构生成（Novel_architecture_generate）以及角色状态的重新生成
"""
import logging
import re

from llm_adapters import create_llm_adapter_from_config
from prompt_definitions import (
    core_seed_prompt,
    character_dynamics_prompt,
    world_building_prompt,
    plot_architecture_prompt,
    create_character_state_prompt
)
from novel_errors import PrerequisiteMissing
from novel_orchestrator.common import invoke_with_cleaning
from novel_orchestrator.project_store import (
    ARCHITECTURE_PARTIAL, ARCHITECTURE_FINAL, CHARACTER_STATE,
    STATUS_ARCHITECTURE_GENERATED
)
from novel_orchestrator.vectorstore_utils import ingest_text

# (partial_architecture.json 中的键, 提示词, 日志名)
ARCHITECTURE_STAGES = (
    ("core_seed", core_seed_prompt, "Step1: core seed"),
    ("character_dynamics", character_dynamics_prompt, "Step2: character dynamics"),
    ("world_building", world_building_prompt, "Step3: world building"),
    ("plot_architecture", plot_architecture_prompt, "Step4: plot architecture"),
)

CHARACTER_STATE_KEY = "character_state"

_character_dynamics_pattern = re.compile(
    r'#=== 2\) 角色动力学 ===\n(.*?)\n\n#===', flags=re.DOTALL
)


def load_partial_architecture_data(store, project_id: str) -> dict:
    data = store.read_json(project_id, ARCHITECTURE_PARTIAL)
    return data if isinstance(data, dict) else {}


def save_partial_architecture_data(store, project_id: str, data: dict):
    store.write_json(project_id, ARCHITECTURE_PARTIAL, data)


def assemble_architecture(info: dict, partial_data: dict) -> str:
    return (
        "#=== 0) 小说设定 ===\n"
        f"主题：{info['topic']},类型：{info['genre']},篇幅：约{info['num_chapters']}章（每章{info['word_number']}字）\n\n"
        "#=== 1) 核心种子 ===\n"
        f"{partial_data['core_seed']}\n\n"
        "#=== 2) 角色动力学 ===\n"
        f"{partial_data['character_dynamics']}\n\n"
        "#=== 3) 世界观 ===\n"
        f"{partial_data['world_building']}\n\n"
        "#=== 4) 三幕式情节架构 ===\n"
        f"{partial_data['plot_architecture']}\n"
    )


def extract_character_dynamics(architecture_text: str) -> str:
    """从完整架构中取出“角色动力学”一节，取不到返回空字符串。"""
    match = _character_dynamics_pattern.search(architecture_text or "")
    return match.group(1).strip() if match else ""


def Novel_architecture_generate(
    store,
    index,
    project_id: str,
    llm_config: dict,
    user_guidance: str = ""
) -> dict:
    """
    依次调用:
      1. core_seed_prompt
      2. character_dynamics_prompt
      3. world_building_prompt
      4. plot_architecture_prompt
    每一步成功后立即写入 partial_architecture.json；任一步失败则抛出 GenerationFailure，
    已完成的步骤保留，下次调用从失败的步骤继续。
    四步完成后依据角色动力学生成初始角色状态，写出 Novel_architecture.txt 与 character_state.txt，
    删除 partial_architecture.json 并把架构写入知识库。
    """
    with store.project_lock(project_id):
        info = store.load_info(project_id)
        partial_data = load_partial_architecture_data(store, project_id)
        llm_adapter = create_llm_adapter_from_config(llm_config)

        prompt_args = {
            "topic": info["topic"],
            "genre": info["genre"],
            "number_of_chapters": info["num_chapters"],
            "word_number": info["word_number"],
            "user_guidance": user_guidance,
        }

        for key, template, label in ARCHITECTURE_STAGES:
            if key in partial_data:
                logging.info(f"{label} already done. Skipping...")
                continue
            logging.info(f"{label}: generating ...")
            # 只传入已完成阶段的结果
            previous = {k: partial_data[k].strip() for k, _, _ in ARCHITECTURE_STAGES if k in partial_data}
            prompt = template.format(**prompt_args, **previous)
            partial_data[key] = invoke_with_cleaning(llm_adapter, prompt)
            save_partial_architecture_data(store, project_id, partial_data)

        if CHARACTER_STATE_KEY not in partial_data:
            logging.info("Generating initial character state from character dynamics ...")
            prompt = create_character_state_prompt.format(
                character_dynamics=partial_data["character_dynamics"].strip()
            )
            partial_data[CHARACTER_STATE_KEY] = invoke_with_cleaning(llm_adapter, prompt)
            save_partial_architecture_data(store, project_id, partial_data)

        architecture = assemble_architecture(info, partial_data)
        character_state = partial_data[CHARACTER_STATE_KEY]
        store.write_text(project_id, ARCHITECTURE_FINAL, architecture)
        store.write_text(project_id, CHARACTER_STATE, character_state)
        logging.info("Novel_architecture.txt has been generated successfully.")

        store.delete_slot(project_id, ARCHITECTURE_PARTIAL)
        logging.info("partial_architecture.json removed (all steps completed).")
        store.advance_status(project_id, STATUS_ARCHITECTURE_GENERATED)

    ingest_text(index, project_id, architecture, "architecture")
    return {"architecture": architecture, "character_state": character_state}


def generate_character_state(
    store,
    index,
    project_id: str,
    llm_config: dict,
    user_guidance: str = ""
) -> str:
    """依据已生成架构中的角色动力学重新生成角色状态表，覆盖原有内容。"""
    with store.project_lock(project_id):
        store.load_info(project_id)
        architecture = store.read_text(project_id, ARCHITECTURE_FINAL)
        if not architecture.strip():
            raise PrerequisiteMissing("architecture", project_id)
        character_dynamics = extract_character_dynamics(architecture)
        if not character_dynamics:
            raise PrerequisiteMissing("character_dynamics", project_id)

        llm_adapter = create_llm_adapter_from_config(llm_config)
        prompt = create_character_state_prompt.format(character_dynamics=character_dynamics)
        if user_guidance:
            prompt = f"{prompt}\n\n用户指导：{user_guidance}"
        character_state = invoke_with_cleaning(llm_adapter, prompt)
        store.write_text(project_id, CHARACTER_STATE, character_state)
        logging.info(f"Character state regenerated for project {project_id}.")

    ingest_text(index, project_id, character_state, "character_state")
    return character_state
