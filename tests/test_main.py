import json

import pytest

import main
from novel_orchestrator import ProjectStore, knowledge, save_chapter_content
from tests.conftest import DEFAULT_RESPONSES


@pytest.fixture
def cli(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("NOVELS_PATH", str(tmp_path / "novels"))
    monkeypatch.setattr(main, "setup_logging", lambda **kwargs: None)
    config_path = str(tmp_path / "config.json")

    def run(*argv):
        code = main.main(["--config", config_path, *argv])
        return code, capsys.readouterr().out

    return run


def test_create_list_and_delete(cli):
    code, out = cli("create", "--title", "雾港", "--genre", "悬疑", "--num-chapters", "3")
    assert code == 0
    project = json.loads(out)
    assert project["word_number"] == 3000

    code, out = cli("list")
    assert [p["id"] for p in json.loads(out)] == [project["id"]]

    code, out = cli("chapters", project["id"])
    assert [c["has_content"] for c in json.loads(out)] == [False, False, False]

    code, out = cli("search", project["id"], "灯塔")
    assert json.loads(out) == []

    code, out = cli("delete", project["id"])
    assert json.loads(out) == {"deleted": True}


def test_domain_errors_exit_with_one(cli):
    code, out = cli("info", "no-such-project")
    assert code == 1
    assert out == ""

    code, out = cli("create", "--title", "雾港", "--num-chapters", "1")
    project_id = json.loads(out)["id"]
    code, _ = cli("finalize", project_id, "1")
    assert code == 1


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        main.build_parser().parse_args([])
    args = main.build_parser().parse_args(["blueprint", "abc", "--overwrite"])
    assert args.overwrite is True
    assert args.guidance == ""


def test_invalid_arguments_exit_with_one(cli):
    code, out = cli("create", "--title", "雾港", "--num-chapters", "0")
    assert code == 1
    assert out == ""

    code, out = cli("create", "--title", "雾港", "--num-chapters", "1")
    code, _ = cli("chapter", json.loads(out)["id"], "0")
    assert code == 1


def test_verbose_flag_beats_log_level_env(cli, monkeypatch):
    seen = {}
    monkeypatch.setattr(main, "setup_logging", lambda **kwargs: seen.update(kwargs))
    monkeypatch.setenv("LOG_LEVEL", "ERROR")

    cli("--verbose", "list")
    assert seen["level"] == "DEBUG"

    cli("list")
    assert seen["level"] == "ERROR"


def test_enrich_command(cli, tmp_path, fake_llm):
    code, out = cli("create", "--title", "雾港", "--num-chapters", "2", "--word-number", "1500")
    project_id = json.loads(out)["id"]

    code, _ = cli("enrich", project_id, "1")
    assert code == 1
    assert fake_llm.calls == []

    save_chapter_content(ProjectStore(str(tmp_path / "novels")), project_id, 1, "雾很大。")
    code, out = cli("enrich", project_id, "1", "--save")
    assert code == 0
    assert out.strip() == DEFAULT_RESPONSES["enrich"]
    assert "1500" in fake_llm.calls[0]["prompt"]
    assert "雾很大。" in fake_llm.calls[0]["prompt"]

    code, out = cli("chapter", project_id, "1")
    assert json.loads(out)["content"] == DEFAULT_RESPONSES["enrich"]


def test_import_knowledge_command(cli, tmp_path, fake_embeddings, monkeypatch):
    monkeypatch.setattr(main, "create_embedding_adapter_from_config", lambda cfg: fake_embeddings)
    monkeypatch.setattr(knowledge, "_ensure_punkt", lambda: None)
    monkeypatch.setattr(knowledge.nltk, "sent_tokenize", lambda text: [text])
    code, out = cli("create", "--title", "雾港", "--num-chapters", "1")
    project_id = json.loads(out)["id"]
    lore = tmp_path / "lore.txt"
    lore.write_text("灯塔建于百年前。", encoding="utf-8")

    code, out = cli("import-knowledge", project_id, str(lore), str(tmp_path / "missing.pdf"))

    assert code == 0
    result = json.loads(out)
    assert result["files"] == ["lore.txt"]
    assert result["total"] == 2
    assert [e["file"] for e in result["errors"]] == ["missing.pdf"]
