import asyncio

import pytest

from securescan.ai_agent.diff import apply_diff
from securescan.ai_agent.providers import AIProvider, LLMError, LLMResponse, ModelConfig, ProviderKind
from securescan.ai_agent.remediation import (
    EMPTY_RESPONSE_ERROR,
    LLM_ERROR,
    NO_FILE_ERROR,
    READ_ERROR,
    RemediationEngine,
    apply_fix,
    build_remediation_prompt,
    clean_llm_response,
)
from securescan.path_guard import PathTraversalError
from securescan.scanners import Finding, Severity

MODEL = ModelConfig(provider=ProviderKind.OLLAMA, model_name="llama3")


class FakeProvider(AIProvider):
    def __init__(self, reply=None, error=None):
        super().__init__(model="fake")
        self.reply = reply
        self.error = error
        self.messages = None

    async def chat(self, messages):
        self.messages = messages
        if self.error:
            raise self.error
        return LLMResponse(content=self.reply, model=self.model)


class ProviderFactory:
    def __init__(self, provider):
        self.provider = provider
        self.calls = []

    def __call__(self, config, **options):
        self.calls.append((config, options))
        return self.provider


def _finding(file="src/app.js", **overrides):
    fields = dict(
        severity=Severity.HIGH,
        title="Use of eval() function",
        description="eval can execute arbitrary code",
        source="security-patterns",
        file=file,
        line=2,
        remediation="Avoid eval",
    )
    fields.update(overrides)
    return Finding(**fields)


def _remediate(engine, finding, working_copy):
    return asyncio.run(engine.remediate(finding, str(working_copy), MODEL))


def test_finding_without_file_never_calls_provider(working_copy):
    factory = ProviderFactory(FakeProvider(reply="x"))
    result = _remediate(RemediationEngine(provider_factory=factory), _finding(file=None), working_copy)
    assert not result.success
    assert result.error == NO_FILE_ERROR
    assert factory.calls == []


def test_successful_fix_returns_verified_diff(working_copy):
    reply = "```javascript\nconst x = 1;\nJSON.parse(input);\n```"
    provider = FakeProvider(reply=reply)
    factory = ProviderFactory(provider)
    engine = RemediationEngine(provider_factory=factory, timeout=30, max_tokens=512)

    result = _remediate(engine, _finding(), working_copy)

    assert result.success, result.error
    assert result.original_content == "const x = 1;\neval(input);\n"
    assert result.fixed_content == "const x = 1;\nJSON.parse(input);\n"
    assert "-eval(input);" in result.diff
    assert "+JSON.parse(input);" in result.diff
    assert apply_diff(result.original_content, result.diff) == result.fixed_content
    assert result.explanation == "Fixed high severity issue: Use of eval() function"
    assert factory.calls == [(MODEL, {"timeout": 30, "max_tokens": 512})]
    assert [m.role for m in provider.messages] == ["system", "user"]
    assert "eval(input);" in provider.messages[1].content


def test_working_copy_is_not_modified(working_copy):
    engine = RemediationEngine(provider_factory=ProviderFactory(FakeProvider(reply="fixed\n")))
    _remediate(engine, _finding(), working_copy)
    assert (working_copy / "src" / "app.js").read_text() == "const x = 1;\neval(input);\n"


def test_provider_error_is_reported(working_copy):
    engine = RemediationEngine(provider_factory=ProviderFactory(FakeProvider(error=LLMError("down"))))
    result = _remediate(engine, _finding(), working_copy)
    assert not result.success
    assert result.error == LLM_ERROR


def test_provider_construction_error_is_reported(working_copy):
    def factory(config, **options):
        raise LLMError("OpenAI API key is required")

    result = _remediate(RemediationEngine(provider_factory=factory), _finding(), working_copy)
    assert result.error == LLM_ERROR


@pytest.mark.parametrize("reply", ["", "   ", "```\n```"])
def test_empty_reply_is_reported(working_copy, reply):
    engine = RemediationEngine(provider_factory=ProviderFactory(FakeProvider(reply=reply)))
    result = _remediate(engine, _finding(), working_copy)
    assert result.error == EMPTY_RESPONSE_ERROR


@pytest.mark.parametrize("path", ["missing.js", "../outside.js"])
def test_unreadable_file_is_reported(working_copy, path):
    factory = ProviderFactory(FakeProvider(reply="x"))
    result = _remediate(RemediationEngine(provider_factory=factory), _finding(file=path), working_copy)
    assert result.error == READ_ERROR
    assert factory.calls == []


def test_clean_llm_response():
    assert clean_llm_response("```python\nprint(1)\n```") == "print(1)"
    assert clean_llm_response("  `print(1)`  ") == "print(1)"
    assert clean_llm_response("plain") == "plain"
    assert clean_llm_response(None) == ""


def test_prompt_includes_finding_details():
    prompt = build_remediation_prompt(_finding(rule="no-eval", column=3, cve="CVE-1"), "code")
    assert "Issue: Use of eval() function" in prompt
    assert "Severity: high" in prompt
    assert "Location: Line 2, Column 3" in prompt
    assert "Rule: no-eval" in prompt
    assert "CVE: CVE-1" in prompt
    assert "File: src/app.js" in prompt


def test_apply_fix(working_copy):
    path = apply_fix(str(working_copy), "src/app.js", "fixed\n")
    assert open(path).read() == "fixed\n"
    with pytest.raises(PathTraversalError):
        apply_fix(str(working_copy), "../escape.js", "x")
