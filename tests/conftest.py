import hashlib

import pytest

from llm_adapters import BaseLLMAdapter
from embedding_adapters import BaseEmbeddingAdapter
from novel_orchestrator import ProjectStore, VectorStoreManager, create_project
from novel_orchestrator import architecture, blueprint, chapter, finalization

SAMPLE_BLUEPRINT = """\
第1章 - [雾港来信]
本章定位：主角登场
核心作用：引出主线
悬念密度：渐进
伏笔操作：埋设(旧怀表)
认知颠覆：★☆☆☆☆
本章简述：林舟收到一封来自已故父亲的信。

第2章 - 灯塔之下
本章定位：事件推进
核心作用：揭示
悬念密度：紧凑
伏笔操作：强化(旧怀表)
认知颠覆：★★☆☆☆
本章简述：林舟在灯塔下发现父亲留下的密码。

第3章 - 潮汐
本章定位：转折
核心作用：转折
悬念密度：爆发
伏笔操作：回收(旧怀表)
认知颠覆：★★★☆☆
本章简述：潮水退去，沉船浮现。
"""

# (提示词中的特征片段, 调用类别)
PROMPT_KINDS = (
    ("雪花写作法", "core_seed"),
    ("请设计3-6个具有动态变化潜力的核心角色", "character_dynamics"),
    ("请构建三维交织的世界观", "world_building"),
    ("三幕式悬念", "plot_architecture"),
    ("请生成一份角色状态文档", "create_character_state"),
    ("已有章节目录", "chunked_blueprint"),
    ("节奏分布", "blueprint"),
    ("生成当前章节的精准摘要", "summarize_recent"),
    ("即将创作", "first_chapter"),
    ("开始完成第", "next_chapter"),
    ("请优化以下章节内容", "optimize"),
    ("更新前文摘要", "summary_update"),
    ("请更新主要角色状态", "character_state_update"),
    ("全局摘要", "global_summary"),
    ("扩写", "enrich"),
)

DEFAULT_RESPONSES = {
    "core_seed": "核心种子：当林舟收到亡父来信，必须揭开雾港之谜。",
    "character_dynamics": "林舟：落魄的钟表匠，表面追求真相。",
    "world_building": "雾港：终年被海雾笼罩的港口城市。",
    "plot_architecture": "第一幕：来信。第二幕：灯塔。第三幕：沉船。",
    "create_character_state": "林舟：\n├──物品：旧怀表",
    "blueprint": SAMPLE_BLUEPRINT,
    "summarize_recent": "分析完毕。\n当前章节摘要: 林舟已收到信件，准备前往灯塔。",
    "first_chapter": "第一章正文：雾气从海面漫上来。",
    "next_chapter": "后续章节正文：灯塔的光在雾中摇晃。",
    "optimize": "润色后的章节正文。",
    "summary_update": "更新后的全局摘要。",
    "character_state_update": "林舟：\n├──物品：旧怀表、密码纸",
    "global_summary": "全局摘要：雾港之谜。",
    "enrich": "扩写后的章节正文。",
}


def classify_prompt(prompt: str) -> str:
    for marker, kind in PROMPT_KINDS:
        if marker in prompt:
            return kind
    return "unknown"


class FakeLLMAdapter(BaseLLMAdapter):
    name = "Fake"

    def __init__(self, responses=None):
        self.responses = dict(DEFAULT_RESPONSES)
        self.responses.update(responses or {})
        self.calls = []
        self.fail_on = {}

    def _invoke(self, prompt, system_message):
        kind = classify_prompt(prompt)
        self.calls.append({"kind": kind, "prompt": prompt, "system_message": system_message})
        error = self.fail_on.get(kind)
        if error is not None:
            raise error
        response = self.responses.get(kind, "通用响应")
        return response(prompt) if callable(response) else response

    def kinds(self):
        return [c["kind"] for c in self.calls]

    def reset(self):
        self.calls = []


class FakeEmbeddingAdapter(BaseEmbeddingAdapter):
    name = "FakeEmbedding"
    retry_sleep = 0
    max_retry_sleep = 0
    dimension = 8

    def __init__(self):
        self.requests = []

    def _embed_query(self, query):
        self.requests.append(query)
        digest = hashlib.sha256(query.encode("utf-8")).digest()
        return [1.0] + [b / 255.0 for b in digest[:self.dimension - 1]]


@pytest.fixture
def fake_llm(monkeypatch):
    adapter = FakeLLMAdapter()
    for module in (architecture, blueprint, chapter, finalization):
        monkeypatch.setattr(module, "create_llm_adapter_from_config", lambda cfg: adapter)
    return adapter


@pytest.fixture
def fake_embeddings():
    return FakeEmbeddingAdapter()


@pytest.fixture
def llm_config():
    return {
        "interface_format": "OpenAI",
        "api_key": "test-key",
        "base_url": "http://localhost:8000/v1",
        "model_name": "test-model",
        "temperature": 0.7,
        "max_tokens": 4096,
        "timeout": 60,
    }


@pytest.fixture
def store(tmp_path):
    return ProjectStore(str(tmp_path / "novels"))


@pytest.fixture
def index(tmp_path, fake_embeddings):
    return VectorStoreManager(fake_embeddings, str(tmp_path / "novels"), retrieval_k=4)


@pytest.fixture
def project(store, index):
    return create_project(store, index, "雾港", "悬疑", "一封来自亡父的信", num_chapters=3, word_number=2000)
