#novel_orchestrator/knowledge.py
# -*- coding: utf-8 -*-
"""
知识文件导入至向量库（advanced_split_content、import_knowledge_file、import_knowledge_files、clear_knowledge）
"""
import os
import logging
import nltk
from pypdf import PdfReader
from pypdf.errors import PdfReadError
from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError

from novel_errors import NovelGeneratorError, StorageFailure
from utils import read_file

MAX_SEGMENT_LENGTH = 500
TEXT_EXTENSIONS = (".txt", ".md", "")


def _ensure_punkt():
    for resource in ("punkt", "punkt_tab"):
        try:
            nltk.data.find(f"tokenizers/{resource}")
        except LookupError:
            nltk.download(resource, quiet=True)


def split_by_length(text: str, max_length: int = MAX_SEGMENT_LENGTH) -> list:
    segments = []
    start_idx = 0
    while start_idx < len(text):
        end_idx = min(start_idx + max_length, len(text))
        segment = text[start_idx:end_idx].strip()
        if segment:
            segments.append(segment)
        start_idx = end_idx
    return segments


def advanced_split_content(content: str, max_length: int = MAX_SEGMENT_LENGTH) -> list:
    """按句子切分后合并成不超过 max_length 字符的段落，超长句子再按长度切开"""
    _ensure_punkt()
    sentences = nltk.sent_tokenize(content)
    if not sentences:
        return []

    final_segments = []
    current_segment = []
    current_length = 0

    for sentence in sentences:
        pieces = split_by_length(sentence, max_length) if len(sentence) > max_length else [sentence]
        for piece in pieces:
            sep = 1 if current_segment else 0
            if current_length + sep + len(piece) > max_length and current_segment:
                final_segments.append(" ".join(current_segment))
                current_segment = []
                current_length = 0
                sep = 0
            current_segment.append(piece)
            current_length += sep + len(piece)

    if current_segment:
        final_segments.append(" ".join(current_segment))

    return [s for s in final_segments if s.strip()]


def _read_pdf(file_path: str) -> str:
    try:
        reader = PdfReader(file_path)
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    except (PdfReadError, OSError, ValueError) as e:
        raise StorageFailure(f"无法解析PDF文件 {file_path}: {e}") from e


def _read_docx(file_path: str) -> str:
    try:
        doc = DocxDocument(file_path)
    except (PackageNotFoundError, KeyError, OSError, ValueError) as e:
        raise StorageFailure(f"无法解析Word文档 {file_path}: {e}") from e
    return "\n".join(para.text for para in doc.paragraphs)


def _read_plain_text(file_path: str) -> str:
    try:
        return read_file(file_path)
    except UnicodeDecodeError as e:
        raise StorageFailure(f"不支持的文件类型且无法作为UTF-8文本读取: {file_path}") from e


def extract_file_text(file_path: str) -> str:
    """
    按扩展名抽取文件文本：.pdf 用 pypdf，.docx 用 python-docx，其余按 UTF-8 文本读取。
    文件不存在或无法解析时抛出 StorageFailure。
    """
    if not os.path.isfile(file_path):
        raise StorageFailure(f"Knowledge file not found: {file_path}")
    ext = os.path.splitext(file_path)[1].lower()
    if ext == ".pdf":
        return _read_pdf(file_path)
    if ext == ".docx":
        return _read_docx(file_path)
    if ext not in TEXT_EXTENSIONS:
        logging.warning(f"不支持的文件类型 {ext}，尝试作为文本文件读取: {file_path}")
    return _read_plain_text(file_path)


def import_knowledge_file(index, project_id: str, file_path: str) -> int:
    """
    读取文本、PDF 或 Word 文件，切分后以 knowledge 类型写入项目知识库，返回写入的段数。
    embedding 失败时抛出 EmbeddingFailure。
    """
    logging.info(f"开始导入知识库文件: {file_path}")
    content = extract_file_text(file_path)
    if not content.strip():
        logging.warning("知识库文件内容为空。")
        return 0

    paragraphs = advanced_split_content(content)
    filename = os.path.basename(file_path)
    metadatas = [
        {"type": "knowledge", "project_id": project_id, "filename": filename}
        for _ in paragraphs
    ]
    added = index.add_documents(project_id, paragraphs, metadatas)
    logging.info(f"知识库文件已成功导入至向量库: {filename}, 共 {added} 段。")
    return added


def import_knowledge_files(index, project_id: str, file_paths: list) -> dict:
    """
    批量导入；单个文件失败只记录错误，继续处理其余文件。
    返回 {"files": 成功的文件名, "segments": 总段数, "total": 文件数, "errors": [{"file", "error"}]}
    """
    imported = []
    errors = []
    segments = 0
    for file_path in file_paths:
        filename = os.path.basename(file_path)
        try:
            added = import_knowledge_file(index, project_id, file_path)
        except (NovelGeneratorError, ValueError) as e:
            logging.error(f"处理文件 {filename} 失败: {e}")
            errors.append({"file": filename, "error": str(e)})
            continue
        if added == 0:
            errors.append({"file": filename, "error": "文件内容为空"})
            continue
        imported.append(filename)
        segments += added

    logging.info(f"成功导入 {len(imported)}/{len(file_paths)} 个文件。")
    return {"files": imported, "segments": segments, "total": len(file_paths), "errors": errors}


def clear_knowledge(index, project_id: str) -> bool:
    """清空项目知识库并重建一个空库。"""
    index.delete_index(project_id)
    return index.create_index(project_id)
