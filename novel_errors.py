# novel_errors.py
# -*- coding: utf-8 -*-
"""
自定义异常类
用于在存储、生成、检索各层之间传递具有明确语义的错误信息。
"""


class NovelGeneratorError(Exception):
    """所有编排层异常的基类"""
    pass


class PrerequisiteMissing(NovelGeneratorError):
    """所需的前置产物（架构、目录、章节草稿等）不存在"""

    def __init__(self, artifact: str, project_id: str = ""):
        self.artifact = artifact
        self.project_id = project_id
        message = f"Missing prerequisite artifact: {artifact}"
        if project_id:
            message += f" (project {project_id})"
        super().__init__(message)


class ProjectNotFound(NovelGeneratorError):
    """项目不存在"""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class GenerationFailure(NovelGeneratorError):
    """文本生成调用失败或返回了不可用的内容"""
    pass


class ProviderError(GenerationFailure):
    """模型服务商接口报错（网络、鉴权、限流等）"""
    pass


class MalformedResponse(GenerationFailure):
    """服务商返回成功，但内容为空或无法解析"""
    pass


class EmbeddingFailure(NovelGeneratorError):
    """向量化失败；检索侧会降级为空结果"""
    pass


class InvalidEmbeddingInput(EmbeddingFailure, ValueError):
    """待向量化的文本为空或类型不正确，未发出任何请求"""
    pass


class StorageFailure(NovelGeneratorError):
    """产物读写失败"""
    pass
