import pytest

from novel_errors import GenerationFailure, PrerequisiteMissing
from novel_orchestrator import (
    Chapter_blueprint_generate,
    Novel_architecture_generate,
    compute_chunk_size,
    create_project,
    get_project_info,
)
from novel_orchestrator.project_store import BLUEPRINT, STATUS_BLUEPRINT_GENERATED
from chapter_directory_parser import parse_chapter_blueprint


def _chunk_response(prompt):
    # 从提示词中取出“第n章到第m章”
    tail = prompt.split("中的第", 1)[1]
    n = int(tail.split("章到第", 1)[0])
    m = int(tail.split("章到第", 1)[1].split("章", 1)[0])
    return "\n\n".join(f"第{i}章 - 标题{i}\n本章定位：定位{i}\n本章简述：简述{i}" for i in range(n, m + 1))


@pytest.mark.parametrize("chapters,max_tokens,expected", [
    (10, 4096, 10),
    (100, 4096, 30),
    (100, 8192, 70),
    (100, 500, 1),
])
def test_compute_chunk_size(chapters, max_tokens, expected):
    assert compute_chunk_size(chapters, max_tokens) == expected


def test_requires_architecture(store, index, project, fake_llm, llm_config):
    with pytest.raises(PrerequisiteMissing) as excinfo:
        Chapter_blueprint_generate(store, index, project["id"], llm_config)
    assert excinfo.value.artifact == "architecture"
    assert fake_llm.calls == []


def test_single_shot_blueprint(store, index, project, fake_llm, llm_config):
    Novel_architecture_generate(store, index, project["id"], llm_config)
    fake_llm.reset()

    text = Chapter_blueprint_generate(store, index, project["id"], llm_config, user_guidance="多埋伏笔")

    assert fake_llm.kinds() == ["blueprint"]
    assert "多埋伏笔" in fake_llm.calls[0]["prompt"]
    assert store.read_text(project["id"], BLUEPRINT) == text
    assert get_project_info(store, project["id"])["status"] == STATUS_BLUEPRINT_GENERATED
    assert any(d.metadata["type"] == "blueprint" for d in index.search(project["id"], "灯塔之下"))


def _long_project(store, index, fake_llm, llm_config, chapters=25):
    info = create_project(store, index, "长篇", "奇幻", "远航", chapters, 1000)
    Novel_architecture_generate(store, index, info["id"], llm_config)
    fake_llm.reset()
    return info


def test_chunked_generation(store, index, fake_llm, llm_config):
    info = _long_project(store, index, fake_llm, llm_config)
    fake_llm.responses["chunked_blueprint"] = _chunk_response
    llm_config = dict(llm_config, max_tokens=2000)  # chunk_size = 10

    text = Chapter_blueprint_generate(store, index, info["id"], llm_config)

    assert fake_llm.kinds() == ["chunked_blueprint"] * 3
    assert [e["chapter_number"] for e in parse_chapter_blueprint(text)] == list(range(1, 26))
    assert "第1章到第10章" in fake_llm.calls[0]["prompt"]
    assert "第21章到第25章" in fake_llm.calls[2]["prompt"]
    assert "第10章 - 标题10" in fake_llm.calls[1]["prompt"]


def test_chunked_generation_resumes(store, index, fake_llm, llm_config):
    info = _long_project(store, index, fake_llm, llm_config)
    llm_config = dict(llm_config, max_tokens=2000)
    calls = []

    def flaky_chunk(prompt):
        calls.append(prompt)
        if len(calls) == 2:
            raise RuntimeError("chunk failed")
        return _chunk_response(prompt)

    fake_llm.responses["chunked_blueprint"] = flaky_chunk
    with pytest.raises(GenerationFailure):
        Chapter_blueprint_generate(store, index, info["id"], llm_config)
    saved = store.read_text(info["id"], BLUEPRINT)
    assert [e["chapter_number"] for e in parse_chapter_blueprint(saved)] == list(range(1, 11))
    assert get_project_info(store, info["id"])["status"] != STATUS_BLUEPRINT_GENERATED

    fake_llm.reset()
    text = Chapter_blueprint_generate(store, index, info["id"], llm_config)
    assert len(fake_llm.calls) == 2
    assert "第11章到第20章" in fake_llm.calls[0]["prompt"]
    assert [e["chapter_number"] for e in parse_chapter_blueprint(text)] == list(range(1, 26))
    assert get_project_info(store, info["id"])["status"] == STATUS_BLUEPRINT_GENERATED


def test_overwrite_discards_existing_blueprint(store, index, project, fake_llm, llm_config):
    Novel_architecture_generate(store, index, project["id"], llm_config)
    store.write_text(project["id"], BLUEPRINT, "第1章 - 旧标题\n本章定位：旧")
    fake_llm.reset()

    text = Chapter_blueprint_generate(store, index, project["id"], llm_config, overwrite=True)
    assert fake_llm.kinds() == ["blueprint"]
    assert "旧标题" not in text


def test_complete_blueprint_is_not_regenerated(store, index, project, fake_llm, llm_config):
    Novel_architecture_generate(store, index, project["id"], llm_config)
    first = Chapter_blueprint_generate(store, index, project["id"], llm_config)
    count = index.document_count(project["id"])
    fake_llm.reset()

    second = Chapter_blueprint_generate(store, index, project["id"], llm_config)

    assert second == first
    assert fake_llm.calls == []
    assert index.document_count(project["id"]) == count


def test_overwrite_replaces_indexed_blueprint(store, index, project, fake_llm, llm_config):
    Novel_architecture_generate(store, index, project["id"], llm_config)
    Chapter_blueprint_generate(store, index, project["id"], llm_config)
    Chapter_blueprint_generate(store, index, project["id"], llm_config, overwrite=True)

    docs = index._load_index_data(project["id"])["documents"]
    assert [d["metadata"]["type"] for d in docs].count("blueprint") == 1
