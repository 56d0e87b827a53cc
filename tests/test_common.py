import logging

import pytest

from novel_errors import MalformedResponse, ProviderError
from novel_orchestrator.common import invoke_with_cleaning, remove_think_tags, setup_logging
from tests.conftest import FakeLLMAdapter


class ScriptedAdapter:
    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def invoke(self, prompt, system_message=None):
        self.calls += 1
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def test_remove_think_tags():
    assert remove_think_tags("<think>想\n一想</think>正文") == "正文"
    assert remove_think_tags("无标签") == "无标签"


def test_invoke_with_cleaning_strips_markup():
    adapter = ScriptedAdapter("<think>推理</think>\n```\n正文内容\n```\n")
    assert invoke_with_cleaning(adapter, "提示") == "正文内容"
    assert adapter.calls == 1


def test_invoke_with_cleaning_passes_system_message():
    adapter = FakeLLMAdapter()
    invoke_with_cleaning(adapter, "随便", system_message="系统")
    assert adapter.calls[0]["system_message"] == "系统"


def test_think_only_output_is_malformed():
    adapter = ScriptedAdapter("<think>只有思考</think>")
    with pytest.raises(MalformedResponse):
        invoke_with_cleaning(adapter, "提示")


def test_unexpected_errors_become_provider_errors():
    adapter = ScriptedAdapter(RuntimeError("connection reset"))
    with pytest.raises(ProviderError) as excinfo:
        invoke_with_cleaning(adapter, "提示")
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_single_attempt_by_default():
    adapter = ScriptedAdapter(ProviderError("down"), "第二次")
    with pytest.raises(ProviderError):
        invoke_with_cleaning(adapter, "提示")
    assert adapter.calls == 1


def test_retries_when_asked():
    adapter = ScriptedAdapter(ProviderError("down"), "第二次")
    assert invoke_with_cleaning(adapter, "提示", max_retries=2) == "第二次"
    assert adapter.calls == 2


def test_base_adapter_wraps_errors_and_empty_content():
    adapter = FakeLLMAdapter()
    adapter.fail_on["unknown"] = ValueError("bad request")
    with pytest.raises(ProviderError):
        adapter.invoke("未知提示")

    adapter.fail_on.clear()
    adapter.responses["unknown"] = "   "
    with pytest.raises(MalformedResponse):
        adapter.invoke("未知提示")


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def test_explicit_level_beats_env(restore_root_logger, monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    setup_logging(level="DEBUG")
    assert restore_root_logger.level == logging.DEBUG

    setup_logging()
    assert restore_root_logger.level == logging.WARNING
