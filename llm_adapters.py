# llm_adapters.py
# -*- coding: utf-8 -*-
import re
import logging
from typing import Optional
from langchain_openai import ChatOpenAI, AzureChatOpenAI
from langchain_core.messages import HumanMessage, SystemMessage as LCSystemMessage
from google import genai
from google.genai import types
from azure.ai.inference import ChatCompletionsClient
from azure.core.credentials import AzureKeyCredential
from azure.ai.inference.models import SystemMessage, UserMessage

from novel_errors import ProviderError, MalformedResponse


def check_base_url(url: str) -> str:
    """
    处理base_url的规则：
    1. 如果url以#结尾，则移除#并直接使用用户提供的url
    2. 否则检查是否需要添加/v1后缀
    """
    url = url.strip()
    if not url:
        return url

    if url.endswith('#'):
        return url.rstrip('#')

    if not re.search(r'/v\d+$', url):
        if '/v1' not in url:
            url = url.rstrip('/') + '/v1'
    return url


class BaseLLMAdapter:
    """
    统一的 LLM 接口基类，为不同后端（OpenAI、Ollama、ML Studio、Gemini等）提供一致的方法签名。
    服务商异常统一包装为 ProviderError，空响应或无法解析的响应抛出 MalformedResponse。
    """
    name = "base"

    def invoke(self, prompt: str, system_message: Optional[str] = None) -> str:
        try:
            content = self._invoke(prompt, system_message)
        except MalformedResponse:
            raise
        except Exception as e:
            logging.error(f"{self.name} API 调用失败: {e}")
            raise ProviderError(f"{self.name} request failed: {e}") from e

        if not isinstance(content, str) or not content.strip():
            raise MalformedResponse(f"{self.name} returned an empty or non-text response")
        return content

    def _invoke(self, prompt: str, system_message: Optional[str]) -> str:
        raise NotImplementedError("Subclasses must implement ._invoke(prompt, system_message) method.")


class OpenAIAdapter(BaseLLMAdapter):
    """
    适配官方/OpenAI兼容接口（使用 langchain ChatOpenAI）
    """
    name = "OpenAI"

    def __init__(self, api_key: str, base_url: str, model_name: str, max_tokens: int, temperature: float = 0.7, timeout: Optional[int] = 600):
        self.base_url = check_base_url(base_url)
        self.api_key = api_key
        self.model_name = model_name
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

        self._client = ChatOpenAI(
            model=self.model_name,
            api_key=self.api_key,
            base_url=self.base_url,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            timeout=self.timeout
        )

    def _invoke(self, prompt: str, system_message: Optional[str]) -> str:
        messages = []
        if system_message:
            messages.append(LCSystemMessage(content=system_message))
        messages.append(HumanMessage(content=prompt))
        response = self._client.invoke(messages)
        if response is None:
            raise MalformedResponse(f"No response from {self.name}Adapter.")
        return response.content


class DeepSeekAdapter(OpenAIAdapter):
    name = "DeepSeek"


class OllamaAdapter(OpenAIAdapter):
    """
    Ollama 同样有一个 OpenAI-like /v1/chat 接口，可直接使用 ChatOpenAI。
    """
    name = "Ollama"


class MLStudioAdapter(OpenAIAdapter):
    name = "MLStudio"


class AzureOpenAIAdapter(OpenAIAdapter):
    """
    适配 Azure OpenAI 接口（使用 langchain AzureChatOpenAI）
    """
    name = "AzureOpenAI"

    def __init__(self, api_key: str, base_url: str, model_name: str, max_tokens: int, temperature: float = 0.7, timeout: Optional[int] = 600):
        match = re.match(r'https://(.+?)/openai/deployments/(.+?)/chat/completions\?api-version=(.+)', base_url)
        if match:
            self.azure_endpoint = f"https://{match.group(1)}"
            self.azure_deployment = match.group(2)
            self.api_version = match.group(3)
        else:
            raise ValueError("Invalid Azure OpenAI base_url format")

        self.api_key = api_key
        self.model_name = self.azure_deployment
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

        self._client = AzureChatOpenAI(
            azure_endpoint=self.azure_endpoint,
            azure_deployment=self.azure_deployment,
            api_version=self.api_version,
            api_key=self.api_key,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            timeout=self.timeout
        )


class GeminiAdapter(BaseLLMAdapter):
    """
    适配 Google Gemini (Google Generative AI) 接口
    """
    name = "Gemini"

    def __init__(self, api_key: str, model_name: str, max_tokens: int, temperature: float = 0.7, timeout: Optional[int] = 600):
        self.api_key = api_key
        self.model_name = model_name
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

        self._client = genai.Client(api_key=self.api_key)

    def _invoke(self, prompt: str, system_message: Optional[str]) -> str:
        response = self._client.models.generate_content(
            model=self.model_name,
            contents=prompt,
            config=types.GenerateContentConfig(
                max_output_tokens=self.max_tokens,
                temperature=self.temperature,
                system_instruction=system_message,
            )
        )
        if not response or not response.text:
            raise MalformedResponse("No text response from Gemini API.")
        return response.text


class AzureAIAdapter(BaseLLMAdapter):
    """
    适配 Azure AI Inference 接口，用于访问Azure AI服务部署的模型
    使用 azure-ai-inference 库进行API调用
    """
    name = "AzureAI"

    def __init__(self, api_key: str, base_url: str, model_name: str, max_tokens: int, temperature: float = 0.7, timeout: Optional[int] = 600):
        # 匹配形如 https://xxx.services.ai.azure.com/models/chat/completions?api-version=xxx 的URL
        match = re.match(r'https://(.+?)\.services\.ai\.azure\.com(?:/models)?(?:/chat/completions)?(?:\?api-version=(.+))?', base_url)
        if match:
            self.endpoint = f"https://{match.group(1)}.services.ai.azure.com/models"
            self.api_version = match.group(2) if match.group(2) else "2024-05-01-preview"
        else:
            raise ValueError("Invalid Azure AI base_url format. Expected format: https://<endpoint>.services.ai.azure.com/models/chat/completions?api-version=xxx")

        self.base_url = self.endpoint
        self.api_key = api_key
        self.model_name = model_name
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.timeout = timeout

        self._client = ChatCompletionsClient(
            endpoint=self.endpoint,
            credential=AzureKeyCredential(self.api_key),
            model=self.model_name,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
            timeout=self.timeout
        )

    def _invoke(self, prompt: str, system_message: Optional[str]) -> str:
        response = self._client.complete(
            messages=[
                SystemMessage(system_message or "You are a helpful assistant."),
                UserMessage(prompt)
            ]
        )
        if not response or not response.choices:
            raise MalformedResponse("No response from AzureAIAdapter.")
        return response.choices[0].message.content


def create_llm_adapter(
    interface_format: str,
    base_url: str,
    model_name: str,
    api_key: str,
    temperature: float = 0.7,
    max_tokens: int = 4096,
    timeout: int = 600
) -> BaseLLMAdapter:
    """
    工厂函数：根据 interface_format 返回不同的适配器实例。
    """
    fmt = interface_format.strip().lower().replace("_", " ")
    if fmt == "deepseek":
        return DeepSeekAdapter(api_key, base_url, model_name, max_tokens, temperature, timeout)
    elif fmt == "openai":
        return OpenAIAdapter(api_key, base_url, model_name, max_tokens, temperature, timeout)
    elif fmt == "azure openai":
        return AzureOpenAIAdapter(api_key, base_url, model_name, max_tokens, temperature, timeout)
    elif fmt == "azure ai":
        return AzureAIAdapter(api_key, base_url, model_name, max_tokens, temperature, timeout)
    elif fmt == "ollama":
        return OllamaAdapter(api_key, base_url, model_name, max_tokens, temperature, timeout)
    elif fmt == "ml studio":
        return MLStudioAdapter(api_key, base_url, model_name, max_tokens, temperature, timeout)
    elif fmt == "gemini":
        # base_url 对 Gemini 暂无用处，可忽略
        return GeminiAdapter(api_key, model_name, max_tokens, temperature, timeout)
    else:
        raise ValueError(f"Unknown interface_format: {interface_format}")


def create_llm_adapter_from_config(llm_config: dict) -> BaseLLMAdapter:
    """从 llm_config 字典创建适配器，缺省项使用默认值。"""
    return create_llm_adapter(
        interface_format=llm_config.get("interface_format", "openai"),
        base_url=llm_config.get("base_url", ""),
        model_name=llm_config.get("model_name", ""),
        api_key=llm_config.get("api_key", ""),
        temperature=llm_config.get("temperature", 0.7),
        max_tokens=llm_config.get("max_tokens", 4096),
        timeout=llm_config.get("timeout", 600),
    )
