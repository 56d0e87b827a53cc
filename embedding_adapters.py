# embedding_adapters.py
# -*- coding: utf-8 -*-
import re
import logging
from typing import List
import requests
import openai
from langchain_openai import AzureOpenAIEmbeddings, OpenAIEmbeddings

from novel_errors import EmbeddingFailure, InvalidEmbeddingInput
from utils import call_with_retry

# 网络抖动、超时类错误才值得重试
TRANSIENT_ERRORS = (
    requests.exceptions.ConnectionError,
    requests.exceptions.Timeout,
    openai.APIConnectionError,
    openai.APITimeoutError,
    ConnectionError,
    TimeoutError,
)


def ensure_openai_base_url_has_v1(url: str) -> str:
    """
    若用户输入的 url 不包含 '/v1'，则在末尾追加 '/v1'。
    """
    url = url.strip()
    if not url:
        return url
    if not re.search(r'/v\d+$', url):
        if '/v1' not in url:
            url = url.rstrip('/') + '/v1'
    return url


def _validate_text(text) -> str:
    if not isinstance(text, str) or not text.strip():
        raise InvalidEmbeddingInput("Embedding input must be a non-empty string.")
    return text


class BaseEmbeddingAdapter:
    """
    Embedding 接口统一基类
    - 空文本或非字符串输入在发出请求之前即被拒绝
    - 网络/超时错误按指数退避重试，最终失败抛出 EmbeddingFailure
    """
    name = "base"
    max_retries = 3
    retry_sleep = 1.0
    max_retry_sleep = 8.0

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        if not isinstance(texts, (list, tuple)) or not texts:
            raise InvalidEmbeddingInput("embed_documents requires a non-empty list of texts.")
        texts = [_validate_text(t) for t in texts]
        vectors = self._with_retry(self._embed_documents, texts=list(texts))
        if not isinstance(vectors, list) or len(vectors) != len(texts):
            raise EmbeddingFailure(f"{self.name} returned {len(vectors) if isinstance(vectors, list) else 'no'} vectors for {len(texts)} texts.")
        for vec in vectors:
            self._check_vector(vec)
        return vectors

    def embed_query(self, query: str) -> List[float]:
        query = _validate_text(query)
        vector = self._with_retry(self._embed_query, query=query)
        self._check_vector(vector)
        return vector

    def _with_retry(self, func, **kwargs):
        try:
            return call_with_retry(
                func,
                max_retries=self.max_retries,
                sleep_time=self.retry_sleep,
                max_sleep=self.max_retry_sleep,
                retry_exceptions=TRANSIENT_ERRORS,
                **kwargs
            )
        except EmbeddingFailure:
            raise
        except Exception as e:
            logging.error(f"{self.name} embedding request failed: {e}")
            raise EmbeddingFailure(f"{self.name} embedding failed: {e}") from e

    def _check_vector(self, vector):
        if not isinstance(vector, list) or not vector:
            raise EmbeddingFailure(f"{self.name} returned an empty embedding vector.")

    def _embed_documents(self, texts: List[str]) -> List[List[float]]:
        return [self._embed_query(text) for text in texts]

    def _embed_query(self, query: str) -> List[float]:
        raise NotImplementedError


class OpenAIEmbeddingAdapter(BaseEmbeddingAdapter):
    """
    基于 OpenAIEmbeddings（或兼容接口）的适配器
    """
    name = "OpenAI"

    def __init__(self, api_key: str, base_url: str, model_name: str):
        self._embedding = OpenAIEmbeddings(
            openai_api_key=api_key,
            openai_api_base=ensure_openai_base_url_has_v1(base_url) or None,
            model=model_name,
            max_retries=0
        )

    def _embed_documents(self, texts: List[str]) -> List[List[float]]:
        return self._embedding.embed_documents(texts)

    def _embed_query(self, query: str) -> List[float]:
        return self._embedding.embed_query(query)


class AzureOpenAIEmbeddingAdapter(OpenAIEmbeddingAdapter):
    """
    基于 AzureOpenAIEmbeddings（或兼容接口）的适配器
    """
    name = "AzureOpenAI"

    def __init__(self, api_key: str, base_url: str, model_name: str):
        match = re.match(r'https://(.+?)/openai/deployments/(.+?)/embeddings\?api-version=(.+)', base_url)
        if match:
            self.azure_endpoint = f"https://{match.group(1)}"
            self.azure_deployment = match.group(2)
            self.api_version = match.group(3)
        else:
            raise ValueError("Invalid Azure OpenAI base_url format")

        self._embedding = AzureOpenAIEmbeddings(
            azure_endpoint=self.azure_endpoint,
            azure_deployment=self.azure_deployment,
            openai_api_key=api_key,
            api_version=self.api_version,
            max_retries=0
        )


class OllamaEmbeddingAdapter(BaseEmbeddingAdapter):
    """
    其接口路径为 /api/embeddings
    """
    name = "Ollama"

    def __init__(self, model_name: str, base_url: str, timeout: int = 120):
        self.model_name = model_name
        self.base_url = (base_url or "http://localhost:11434/api").rstrip("/")
        self.timeout = timeout

    def _embed_query(self, query: str) -> List[float]:
        url = self.base_url
        if "/api/embeddings" not in url:
            if "/api" in url:
                url = f"{url}/embeddings"
            else:
                if "/v1" in url:
                    url = url[:url.index("/v1")]
                url = f"{url}/api/embeddings"

        response = requests.post(url, json={"model": self.model_name, "prompt": query}, timeout=self.timeout)
        response.raise_for_status()
        result = response.json()
        if "embedding" not in result:
            raise EmbeddingFailure("No 'embedding' field in Ollama response.")
        return result["embedding"]


class MLStudioEmbeddingAdapter(BaseEmbeddingAdapter):
    """
    基于 LM Studio 的 embedding 适配器
    """
    name = "MLStudio"

    def __init__(self, api_key: str, base_url: str, model_name: str, timeout: int = 120):
        self.url = ensure_openai_base_url_has_v1(base_url)
        if not self.url.endswith('/embeddings'):
            self.url = f"{self.url}/embeddings"

        self.headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json"
        }
        self.model_name = model_name
        self.timeout = timeout

    def _post(self, payload_input):
        response = requests.post(
            self.url,
            json={"input": payload_input, "model": self.model_name},
            headers=self.headers,
            timeout=self.timeout
        )
        response.raise_for_status()
        result = response.json()
        if "data" not in result or not result["data"]:
            raise EmbeddingFailure(f"Invalid response format from {self.name} API: {result}")
        return [item.get("embedding", []) for item in result["data"]]

    def _embed_documents(self, texts: List[str]) -> List[List[float]]:
        return self._post(texts)

    def _embed_query(self, query: str) -> List[float]:
        return self._post(query)[0]


class GeminiEmbeddingAdapter(BaseEmbeddingAdapter):
    """
    基于 Google Generative AI (Gemini) 接口的 Embedding 适配器
    使用直接 POST 请求方式，URL 示例：
    https://generativelanguage.googleapis.com/v1beta/models/text-embedding-004:embedContent?key=YOUR_API_KEY
    """
    name = "Gemini"

    def __init__(self, api_key: str, model_name: str, base_url: str, timeout: int = 120):
        self.api_key = api_key
        self.model_name = model_name
        self.base_url = (base_url or "https://generativelanguage.googleapis.com/v1beta/models").rstrip("/")
        self.timeout = timeout

    def _embed_query(self, query: str) -> List[float]:
        url = f"{self.base_url}/{self.model_name}:embedContent?key={self.api_key}"
        payload = {
            "model": self.model_name,
            "content": {"parts": [{"text": query}]}
        }
        response = requests.post(url, json=payload, timeout=self.timeout)
        response.raise_for_status()
        return response.json().get("embedding", {}).get("values", [])


class SiliconFlowEmbeddingAdapter(MLStudioEmbeddingAdapter):
    """
    基于 SiliconFlow 的 embedding 适配器（OpenAI 兼容的 /v1/embeddings）
    """
    name = "SiliconFlow"

    def __init__(self, api_key: str, base_url: str, model_name: str, timeout: int = 120):
        base_url = base_url or "https://api.siliconflow.cn/v1/embeddings"
        # 自动为 base_url 添加 scheme（如果缺失）
        if not base_url.startswith("http://") and not base_url.startswith("https://"):
            base_url = "https://" + base_url
        super().__init__(api_key, base_url, model_name, timeout)


class JinaEmbeddingAdapter(BaseEmbeddingAdapter):
    """
    Jina AI 嵌入接口：https://api.jina.ai/v1/embeddings
    """
    name = "Jina"
    max_input_length = 8000

    def __init__(self, api_key: str, base_url: str = "", model_name: str = "jina-embeddings-v3",
                 task: str = "text-matching", timeout: int = 120):
        self.url = base_url or "https://api.jina.ai/v1/embeddings"
        self.model_name = model_name or "jina-embeddings-v3"
        self.task = task
        self.timeout = timeout
        self.headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def _embed_documents(self, texts: List[str]) -> List[List[float]]:
        processed = []
        for text in texts:
            if len(text) > self.max_input_length:
                logging.warning(f"Text too long for Jina, truncating: {len(text)} > {self.max_input_length}")
                text = text[:self.max_input_length]
            processed.append(text)

        response = requests.post(
            self.url,
            json={"model": self.model_name, "task": self.task, "input": processed},
            headers=self.headers,
            timeout=self.timeout
        )
        response.raise_for_status()
        data = response.json().get("data")
        if not isinstance(data, list):
            raise EmbeddingFailure("Jina AI API returned an unexpected payload.")
        vectors = []
        for item in data:
            embedding = item.get("embedding") if isinstance(item, dict) else None
            if not isinstance(embedding, list):
                raise EmbeddingFailure("Jina AI API returned a malformed embedding.")
            vectors.append(embedding)
        return vectors

    def _embed_query(self, query: str) -> List[float]:
        return self._embed_documents([query])[0]


def create_embedding_adapter(
    interface_format: str,
    api_key: str,
    base_url: str,
    model_name: str
) -> BaseEmbeddingAdapter:
    """
    工厂函数：根据 interface_format 返回不同的 embedding 适配器实例
    """
    fmt = interface_format.strip().lower().replace("_", " ")
    if fmt == "openai":
        return OpenAIEmbeddingAdapter(api_key, base_url, model_name)
    elif fmt == "azure openai":
        return AzureOpenAIEmbeddingAdapter(api_key, base_url, model_name)
    elif fmt == "ollama":
        return OllamaEmbeddingAdapter(model_name, base_url)
    elif fmt == "ml studio":
        return MLStudioEmbeddingAdapter(api_key, base_url, model_name)
    elif fmt == "gemini":
        return GeminiEmbeddingAdapter(api_key, model_name, base_url)
    elif fmt == "siliconflow":
        return SiliconFlowEmbeddingAdapter(api_key, base_url, model_name)
    elif fmt == "jina":
        return JinaEmbeddingAdapter(api_key, base_url, model_name)
    else:
        raise ValueError(f"Unknown embedding interface_format: {interface_format}")


def create_embedding_adapter_from_config(embedding_config: dict) -> BaseEmbeddingAdapter:
    return create_embedding_adapter(
        interface_format=embedding_config.get("interface_format", "jina"),
        api_key=embedding_config.get("api_key", ""),
        base_url=embedding_config.get("base_url", ""),
        model_name=embedding_config.get("model_name", ""),
    )
