#novel_orchestrator/common.py
# -*- coding: utf-8 -*-
"""
通用的 LLM 调用、清洗、日志工具
"""
import os
import logging
import re

from novel_errors import GenerationFailure, MalformedResponse, ProviderError

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


def setup_logging(log_file: str = None, level: str = None):
    """
    初始化根日志：控制台输出，另可选写入 UTF-8 日志文件。
    显式传入的 level 优先，其次是 LOG_LEVEL 环境变量，默认 INFO。
    """
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    handlers = [logging.StreamHandler()]
    if log_file:
        log_dir = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=level_name, format=LOG_FORMAT, handlers=handlers, force=True)


def remove_think_tags(text: str) -> str:
    """移除 <think>...</think> 包裹的内容"""
    return re.sub(r'<think>.*?</think>', '', text, flags=re.DOTALL)


def debug_log(prompt: str, response_content: str):
    logging.debug(
        f"\n[#########################################  Prompt  #########################################]\n{prompt}\n"
    )
    logging.debug(
        f"\n[######################################### Response #########################################]\n{response_content}\n"
    )


def invoke_with_cleaning(llm_adapter, prompt: str, system_message: str = None, max_retries: int = 1) -> str:
    """
    调用 LLM 并清理返回结果（去除 think 标签与代码块标记）。
    默认只调用一次；失败时抛出 GenerationFailure，由调用方决定是否重试。
    """
    last_error = None
    for attempt in range(1, max_retries + 1):
        try:
            response = llm_adapter.invoke(prompt, system_message=system_message)
        except GenerationFailure as e:
            last_error = e
            logging.warning(f"[invoke_with_cleaning] Attempt {attempt}/{max_retries} failed: {e}")
            continue
        except Exception as e:
            last_error = ProviderError(f"LLM adapter raised {type(e).__name__}: {e}")
            last_error.__cause__ = e
            logging.warning(f"[invoke_with_cleaning] Attempt {attempt}/{max_retries} failed: {e}")
            continue

        cleaned_text = remove_think_tags(response).replace("```", "").strip()
        debug_log(prompt, cleaned_text)
        if cleaned_text:
            return cleaned_text
        last_error = MalformedResponse("Model returned only whitespace or markup.")
        logging.warning(f"[invoke_with_cleaning] Attempt {attempt}/{max_retries} returned empty content.")

    raise last_error
