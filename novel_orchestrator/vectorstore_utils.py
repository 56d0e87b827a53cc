#novel_orchestrator/vectorstore_utils.py
# -*- coding: utf-8 -*-
"""
项目知识库：记录以 JSON 持久化（文本 + 元数据 + 向量），
检索时用已存向量重建内存向量库，不对已存文本重复做 embedding。
"""
import os
import logging
import threading
from datetime import datetime, timezone
from typing import List, Optional

from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.vectorstores import InMemoryVectorStore

from novel_errors import EmbeddingFailure, StorageFailure
from utils import load_data_from_json, save_data_to_json, remove_path

INDEX_DIR = "vectorstore"
INDEX_FILE = "vector_data.json"
NO_KNOWLEDGE_TEXT = "（无相关知识库内容）"

# 检索策略的“换下一种”信号
_TRY_NEXT = object()


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _metadata_matches(metadata: dict, conditions: dict) -> bool:
    return all(metadata.get(k) == v for k, v in conditions.items())


class RecordEmbeddings(Embeddings):
    """
    已知文本直接返回持久化的向量，只有未知文本才交给 embedding 适配器。
    查询向量总是由适配器实时计算。
    """

    def __init__(self, embedding_adapter, known_vectors: dict):
        self.embedding_adapter = embedding_adapter
        self._known = dict(known_vectors)

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        missing = [t for t in dict.fromkeys(texts) if t not in self._known]
        if missing:
            for text, vector in zip(missing, self.embedding_adapter.embed_documents(missing)):
                self._known[text] = vector
        return [self._known[t] for t in texts]

    def embed_query(self, text: str) -> List[float]:
        return self.embedding_adapter.embed_query(text)


class VectorStoreManager:
    """
    按项目管理知识库：<vector_store_path>/<project_id>/vectorstore/vector_data.json
    """

    def __init__(self, embedding_adapter, vector_store_path: str, retrieval_k: int = 4):
        self.embedding_adapter = embedding_adapter
        self.vector_store_path = vector_store_path
        self.retrieval_k = retrieval_k
        self._locks = {}
        self._locks_guard = threading.Lock()

    def _lock(self, project_id: str) -> threading.RLock:
        with self._locks_guard:
            return self._locks.setdefault(project_id, threading.RLock())

    def _discard_lock(self, project_id: str):
        with self._locks_guard:
            self._locks.pop(project_id, None)

    def get_vectorstore_dir(self, project_id: str) -> str:
        return os.path.join(self.vector_store_path, project_id, INDEX_DIR)

    def _index_file(self, project_id: str) -> str:
        return os.path.join(self.get_vectorstore_dir(project_id), INDEX_FILE)

    def _new_index_data(self, project_id: str) -> dict:
        now = _utc_now()
        return {
            "project_id": project_id,
            "embedding_provider": getattr(self.embedding_adapter, "name", ""),
            "created_at": now,
            "updated_at": now,
            "documents": [],
        }

    def _load_index_data(self, project_id: str) -> Optional[dict]:
        data = load_data_from_json(self._index_file(project_id))
        if data is None:
            return None
        if not isinstance(data, dict) or not isinstance(data.get("documents"), list):
            raise StorageFailure(f"Malformed index file for project {project_id}")
        return data

    # ============ 生命周期 ============

    def index_exists(self, project_id: str) -> bool:
        return os.path.exists(self._index_file(project_id))

    def create_index(self, project_id: str) -> bool:
        """创建空知识库；已存在时保持原样并返回 False。"""
        with self._lock(project_id):
            if self.index_exists(project_id):
                return False
            save_data_to_json(self._new_index_data(project_id), self._index_file(project_id))
            logging.info(f"Vector store created for project {project_id}.")
            return True

    def delete_index(self, project_id: str) -> bool:
        """删除全部记录，不会自动重建。"""
        with self._lock(project_id):
            removed = remove_path(self.get_vectorstore_dir(project_id))
        self._discard_lock(project_id)
        if removed:
            logging.info(f"Vector store removed for project {project_id}.")
        else:
            logging.info(f"No vector store found to clear for project {project_id}.")
        return removed

    def document_count(self, project_id: str) -> int:
        try:
            data = self._load_index_data(project_id)
        except StorageFailure as e:
            logging.warning(f"Failed to read vector store: {e}")
            return 0
        return len(data["documents"]) if data else 0

    # ============ 写入 ============

    def add_documents(self, project_id: str, texts: List[str], metadatas: Optional[List[dict]] = None,
                      replace_where: Optional[dict] = None) -> int:
        """
        对 texts 做 embedding 后追加到知识库，返回新增条数。
        replace_where 非空时，元数据与之全部匹配的旧记录在同一次写入中被替换掉。
        embedding 失败时抛出 EmbeddingFailure，已有记录不受影响。
        """
        metadatas = metadatas or [{} for _ in texts]
        if len(metadatas) != len(texts):
            raise ValueError("texts and metadatas must have the same length")

        pairs = [(t, m) for t, m in zip(texts, metadatas) if isinstance(t, str) and t.strip()]
        if len(pairs) < len(texts):
            logging.warning(f"Skipping {len(texts) - len(pairs)} empty text(s) for the vector store.")
        if not pairs:
            return 0

        with self._lock(project_id):
            data = self._load_index_data(project_id) or self._new_index_data(project_id)
            vectors = self.embedding_adapter.embed_documents([t for t, _ in pairs])

            kept = [
                r for r in data["documents"]
                if not (replace_where and _metadata_matches(r.get("metadata") or {}, replace_where))
            ]
            replaced = len(data["documents"]) - len(kept)
            dimension = len(kept[0]["vector"]) if kept else len(vectors[0])
            for vec in vectors:
                if len(vec) != dimension:
                    raise EmbeddingFailure(
                        f"Embedding dimension {len(vec)} does not match index dimension {dimension}."
                    )

            data["documents"] = kept

            for (text, metadata), vector in zip(pairs, vectors):
                record_metadata = dict(metadata or {})
                record_metadata.setdefault("project_id", project_id)
                data["documents"].append({
                    "page_content": text,
                    "metadata": record_metadata,
                    "vector": [float(x) for x in vector],
                })
            data["updated_at"] = _utc_now()
            save_data_to_json(data, self._index_file(project_id))

        if replaced:
            logging.info(f"Replaced {replaced} earlier document(s) matching {replace_where}.")
        logging.info(f"Added {len(pairs)} document(s) to vector store, total {len(data['documents'])}.")
        return len(pairs)

    # ============ 检索 ============

    def _build_store(self, records: List[dict]) -> InMemoryVectorStore:
        known = {r["page_content"]: r["vector"] for r in records if r.get("vector")}
        store = InMemoryVectorStore(RecordEmbeddings(self.embedding_adapter, known))
        docs = [
            Document(page_content=r["page_content"], metadata=r.get("metadata") or {})
            for r in records if r.get("vector")
        ]
        if docs:
            store.add_documents(docs)
        return store

    def _similarity_search(self, store, records, query):
        if store is None:
            return _TRY_NEXT
        docs = store.similarity_search(query, k=self.retrieval_k)
        if not isinstance(docs, list):
            return _TRY_NEXT
        return docs

    def _scored_similarity_search(self, store, records, query):
        if store is None:
            return _TRY_NEXT
        scored = store.similarity_search_with_score(query, k=self.retrieval_k)
        if not isinstance(scored, list):
            return _TRY_NEXT
        return [doc for doc, _score in scored]

    def _substring_search(self, store, records, query):
        lowered = query.lower()
        matched = [
            Document(page_content=r["page_content"], metadata=r.get("metadata") or {})
            for r in records
            if r.get("page_content") and lowered in r["page_content"].lower()
        ]
        logging.info(f"Substring search matched {len(matched)} document(s).")
        return matched[:self.retrieval_k]

    def search(self, project_id: str, query: str) -> List[Document]:
        """
        依次尝试：向量相似度检索 -> 带分数的相似度检索 -> 原文子串匹配。
        知识库不存在、查询为空或全部策略失败时返回 []，不抛异常。
        """
        if not isinstance(query, str) or not query.strip():
            return []
        try:
            data = self._load_index_data(project_id)
        except StorageFailure as e:
            logging.warning(f"Failed to load vector store: {e}")
            return []
        if data is None:
            logging.info(f"No vector store found for project {project_id}. Returning empty result.")
            return []
        records = data["documents"]
        if not records:
            return []

        try:
            store = self._build_store(records)
        except Exception as e:
            logging.warning(f"Rebuilding in-memory vector store failed: {e}")
            store = None

        strategies = (self._similarity_search, self._scored_similarity_search, self._substring_search)
        for strategy in strategies:
            try:
                result = strategy(store, records, query)
            except Exception as e:
                logging.warning(f"{strategy.__name__} failed: {e}")
                continue
            if result is _TRY_NEXT:
                continue
            return result
        return []


def get_relevant_context_from_vector_store(
    index: VectorStoreManager,
    project_id: str,
    query: str,
    max_length: int = 2000
) -> str:
    """
    检索与 query 最相关的文本，拼接后返回，最多 max_length 个字符。
    没有命中时返回空字符串。
    """
    docs = index.search(project_id, query)
    if not docs:
        logging.info(f"No relevant documents found for query '{query[:50]}'. Returning empty context.")
        return ""
    combined = "\n".join(d.page_content for d in docs)
    return combined[:max_length]


def ingest_text(index: VectorStoreManager, project_id: str, text: str, doc_type: str, **metadata) -> bool:
    """
    把一份产物写入知识库，同类产物（章节按章号区分）只保留最新一份。
    失败只记日志，不影响调用方已经完成的写入。
    """
    if index is None or not text or not text.strip():
        return False
    record_metadata = {"type": doc_type, "project_id": project_id}
    record_metadata.update(metadata)
    try:
        index.add_documents(project_id, [text], [record_metadata], replace_where=record_metadata)
        return True
    except Exception as e:
        logging.warning(f"Failed to ingest {doc_type} into vector store for project {project_id}: {e}")
        return False
