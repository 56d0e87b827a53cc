import re

import docx
import pytest
from pypdf.errors import PdfReadError

from novel_errors import StorageFailure
from novel_orchestrator import clear_knowledge, import_knowledge_file, import_knowledge_files
from novel_orchestrator import knowledge
from novel_orchestrator.knowledge import advanced_split_content, split_by_length


def _sentences(text):
    return [s for s in re.findall(r"[^。！？]+[。！？]?", text) if s.strip()]


@pytest.fixture(autouse=True)
def offline_tokenizer(monkeypatch):
    monkeypatch.setattr(knowledge, "_ensure_punkt", lambda: None)
    monkeypatch.setattr(knowledge.nltk, "sent_tokenize", _sentences)


def test_split_by_length():
    assert split_by_length("a" * 1200, 500) == ["a" * 500, "a" * 500, "a" * 200]
    assert split_by_length("", 500) == []


def test_segments_respect_max_length():
    text = "雾港终年有雾。" * 200 + "长" * 1300 + "。"
    segments = advanced_split_content(text)
    assert segments
    assert all(len(s) <= knowledge.MAX_SEGMENT_LENGTH for s in segments)
    assert "".join(segments).replace(" ", "") == text


def test_short_text_is_one_segment():
    assert advanced_split_content("第一句。第二句。") == ["第一句。 第二句。"]
    assert advanced_split_content("") == []


def test_import_knowledge_file(index, project, tmp_path):
    path = tmp_path / "lore.txt"
    path.write_text("灯塔建于百年前。" * 100, encoding="utf-8")

    added = import_knowledge_file(index, project["id"], str(path))

    assert added >= 2
    assert index.document_count(project["id"]) == added
    docs = index.search(project["id"], "灯塔")
    assert docs
    assert all(d.metadata == {"type": "knowledge", "project_id": project["id"], "filename": "lore.txt"}
               for d in docs)


def test_import_missing_or_empty_file(index, project, tmp_path):
    with pytest.raises(StorageFailure):
        import_knowledge_file(index, project["id"], str(tmp_path / "missing.txt"))

    empty = tmp_path / "empty.txt"
    empty.write_text("   \n", encoding="utf-8")
    assert import_knowledge_file(index, project["id"], str(empty)) == 0


def test_clear_knowledge(index, project, tmp_path):
    path = tmp_path / "lore.txt"
    path.write_text("沉船里藏着怀表。", encoding="utf-8")
    import_knowledge_file(index, project["id"], str(path))

    assert clear_knowledge(index, project["id"]) is True
    assert index.index_exists(project["id"])
    assert index.document_count(project["id"]) == 0
    assert index.search(project["id"], "怀表") == []


class _FakePage:
    def __init__(self, text):
        self.text = text

    def extract_text(self):
        return self.text


def test_import_pdf_file(index, project, tmp_path, monkeypatch):
    path = tmp_path / "雾港设定.pdf"
    path.write_bytes(b"%PDF-1.4")
    opened = []

    class FakeReader:
        def __init__(self, file_path):
            opened.append(file_path)
            self.pages = [_FakePage("灯塔建于百年前。"), _FakePage(None), _FakePage("守塔人失踪了。")]

    monkeypatch.setattr(knowledge, "PdfReader", FakeReader)

    assert import_knowledge_file(index, project["id"], str(path)) == 1
    assert opened == [str(path)]
    doc = index.search(project["id"], "守塔人")[0]
    assert "灯塔建于百年前。" in doc.page_content
    assert doc.metadata["filename"] == "雾港设定.pdf"


def test_unreadable_pdf_is_a_storage_failure(index, project, tmp_path, monkeypatch):
    path = tmp_path / "broken.pdf"
    path.write_bytes(b"not a pdf")

    def broken(file_path):
        raise PdfReadError("EOF marker not found")

    monkeypatch.setattr(knowledge, "PdfReader", broken)
    with pytest.raises(StorageFailure):
        import_knowledge_file(index, project["id"], str(path))


def test_import_docx_file(index, project, tmp_path):
    path = tmp_path / "人物.docx"
    document = docx.Document()
    document.add_paragraph("沈墨是守塔人的女儿。")
    document.add_paragraph("她收到了一封亡父的信。")
    document.save(str(path))

    assert import_knowledge_file(index, project["id"], str(path)) == 1
    doc = index.search(project["id"], "沈墨")[0]
    assert "亡父的信" in doc.page_content
    assert doc.metadata["filename"] == "人物.docx"


def test_corrupt_docx_and_binary_text_fail(index, project, tmp_path):
    bad_docx = tmp_path / "bad.docx"
    bad_docx.write_bytes(b"plain bytes, not a zip package")
    with pytest.raises(StorageFailure):
        import_knowledge_file(index, project["id"], str(bad_docx))

    binary = tmp_path / "notes.bin"
    binary.write_bytes(b"\xff\xfe\x00\x81\x9f")
    with pytest.raises(StorageFailure):
        import_knowledge_file(index, project["id"], str(binary))
    assert index.document_count(project["id"]) == 0


def test_unknown_extension_is_read_as_text(index, project, tmp_path):
    path = tmp_path / "lore.markdown"
    path.write_text("沉船里藏着怀表。", encoding="utf-8")
    assert import_knowledge_file(index, project["id"], str(path)) == 1


def test_import_several_files_reports_errors(index, project, tmp_path):
    good = tmp_path / "lore.txt"
    good.write_text("灯塔建于百年前。", encoding="utf-8")
    empty = tmp_path / "empty.txt"
    empty.write_text("  ", encoding="utf-8")
    other = tmp_path / "more.md"
    other.write_text("守塔人失踪了。", encoding="utf-8")

    result = import_knowledge_files(
        index, project["id"], [str(good), str(tmp_path / "missing.txt"), str(empty), str(other)]
    )

    assert result["files"] == ["lore.txt", "more.md"]
    assert result["segments"] == 2
    assert result["total"] == 4
    assert [e["file"] for e in result["errors"]] == ["missing.txt", "empty.txt"]
    assert result["errors"][1]["error"] == "文件内容为空"
    assert index.document_count(project["id"]) == 2
