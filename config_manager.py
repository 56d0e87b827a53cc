# config_manager.py
# -*- coding: utf-8 -*-
import copy
import json
import logging
import os

from llm_adapters import create_llm_adapter_from_config
from embedding_adapters import create_embedding_adapter_from_config

DEFAULT_CONFIG_FILE = "config.json"

DEFAULT_CONFIG = {
    "llm": {
        "interface_format": "OpenAI",
        "api_key": "",
        "base_url": "https://api.openai.com/v1",
        "model_name": "gpt-4o-mini",
        "temperature": 0.7,
        "max_tokens": 8192,
        "timeout": 600
    },
    "embedding": {
        "interface_format": "Jina",
        "api_key": "",
        "base_url": "https://api.jina.ai/v1/embeddings",
        "model_name": "jina-embeddings-v3",
        "retrieval_k": 4
    },
    "storage": {
        "novels_path": "novels"
    },
    "logging": {
        "level": "INFO",
        "log_file": ""
    }
}

# 环境变量 -> (配置段, 键, 类型)
ENV_OVERRIDES = {
    "NOVELS_PATH": ("storage", "novels_path", str),
    "EMBEDDING_INTERFACE_FORMAT": ("embedding", "interface_format", str),
    "EMBEDDING_MODEL": ("embedding", "model_name", str),
    "EMBEDDING_API_KEY": ("embedding", "api_key", str),
    "EMBEDDING_URL": ("embedding", "base_url", str),
    "EMBEDDING_RETRIEVAL_K": ("embedding", "retrieval_k", int),
    "LOG_LEVEL": ("logging", "level", str),
}


def load_config(config_file: str) -> dict:
    """从指定的 config_file 加载配置，若不存在或无法解析则返回空字典。"""
    if os.path.exists(config_file):
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logging.warning(f"Failed to load config file {config_file}: {e}")
    return {}


def save_config(config_data: dict, config_file: str) -> bool:
    """将 config_data 保存到 config_file 中，返回 True/False 表示是否成功。"""
    try:
        with open(config_file, 'w', encoding='utf-8') as f:
            json.dump(config_data, f, ensure_ascii=False, indent=4)
        return True
    except OSError as e:
        logging.error(f"Failed to save config file {config_file}: {e}")
        return False


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def get_config(config_file: str = DEFAULT_CONFIG_FILE, environ=None) -> dict:
    """
    DEFAULT_CONFIG <- 配置文件 <- 环境变量，依次覆盖。
    """
    environ = os.environ if environ is None else environ
    config = _merge(copy.deepcopy(DEFAULT_CONFIG), load_config(config_file))
    for env_name, (section, key, cast) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or value == "":
            continue
        try:
            config.setdefault(section, {})[key] = cast(value)
        except ValueError:
            logging.warning(f"Ignoring invalid value for {env_name}: {value!r}")
    return config


def check_llm_config(llm_config: dict) -> bool:
    """测试当前的LLM配置是否可用"""
    logging.info("开始测试LLM配置...")
    try:
        llm_adapter = create_llm_adapter_from_config(llm_config)
        response = llm_adapter.invoke("Please reply 'OK'")
    except Exception as e:
        logging.error(f"❌ LLM配置测试出错: {e}")
        return False
    logging.info("✅ LLM配置测试成功！")
    logging.info(f"测试回复: {response}")
    return True


def check_embedding_config(embedding_config: dict) -> bool:
    """测试当前的Embedding配置是否可用"""
    logging.info("开始测试Embedding配置...")
    try:
        embedding_adapter = create_embedding_adapter_from_config(embedding_config)
        embeddings = embedding_adapter.embed_query("测试文本")
    except Exception as e:
        logging.error(f"❌ Embedding配置测试出错: {e}")
        return False
    logging.info("✅ Embedding配置测试成功！")
    logging.info(f"生成的向量维度: {len(embeddings)}")
    return True
