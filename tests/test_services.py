"""Tests for reddit_explainer.services: dispatch, fallback routing, end-to-end scenarios."""
import logging

import httpx
import pytest

from reddit_explainer import fallback
from reddit_explainer.models import PostData, ProviderConfig
from reddit_explainer.services import (
    ExplanationService, FailureKind, ProviderFailure, ProviderSuccess, attempt,
)
from reddit_explainer.providers import build_adapters


def openai_body(text: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": text}}]}


@pytest.mark.asyncio
@pytest.mark.parametrize("provider", ["openai", "anthropic", "deepseek", "google", "custom", "nonsense"])
async def test_no_api_key_returns_fallback_without_network(make_client, post: PostData, provider: str) -> None:
    client, recorder = make_client(lambda r: httpx.Response(200, json=openai_body("real")))
    service = ExplanationService(client=client)
    config = ProviderConfig(provider=provider, api_key="")

    result = await service.explain(post, "beginner", config)

    assert result == fallback.generate(post, "beginner")
    assert recorder.calls == 0


@pytest.mark.asyncio
async def test_scenario_a_no_key_simple_level(make_client) -> None:
    """Credential empty, level simple: simple fallback intro plus the title echo."""
    client, recorder = make_client(lambda r: httpx.Response(200, json={}))
    post = PostData(title="Why is the sky blue?", postContent="", topComments=[])

    result = await ExplanationService(client=client).explain(post, "simple", ProviderConfig())

    assert result.startswith(fallback.FALLBACK_INTROS["simple"])
    assert "Why is the sky blue?" in result
    assert recorder.calls == 0


@pytest.mark.asyncio
async def test_scenario_b_openai_500_falls_back_and_logs(make_client, post: PostData, openai_config: ProviderConfig,
                                                          caplog: pytest.LogCaptureFixture) -> None:
    """openai returning HTTP 500 gives the fallback text and an error log naming openai."""
    client, recorder = make_client(lambda r: httpx.Response(500, text="internal error"))
    service = ExplanationService(client=client)

    with caplog.at_level(logging.ERROR, logger="reddit_explainer.services"):
        result = await service.explain(post, "simple", openai_config)

    assert result == fallback.generate(post, "simple")
    assert recorder.calls == 1
    errors = [r.getMessage() for r in caplog.records if r.levelno == logging.ERROR]
    assert any("openai" in message and "500" in message for message in errors)


@pytest.mark.asyncio
async def test_scenario_c_custom_groq_endpoint_returns_content(make_client, post: PostData) -> None:
    """Custom groq endpoint with an OpenAI-shaped body returns the message content, not the fallback."""
    client, recorder = make_client(lambda r: httpx.Response(200, json=openai_body("Light scatters off air molecules.")))
    config = ProviderConfig(provider="custom", api_key="gsk", custom_endpoint="https://api.groq.com/v1/chat/completions")

    result = await ExplanationService(client=client).explain(post, "simple", config)

    assert result == "Light scatters off air molecules."
    assert recorder.calls == 1


@pytest.mark.asyncio
async def test_unknown_provider_returns_fallback_without_network(make_client, post: PostData) -> None:
    client, recorder = make_client(lambda r: httpx.Response(200, json=openai_body("real")))
    config = ProviderConfig(provider="cohere", api_key="k")

    result = await ExplanationService(client=client).explain(post, "advanced", config)

    assert result == fallback.generate(post, "advanced")
    assert recorder.calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("provider, malformed", [
    ("openai", {"choices": []}),
    ("anthropic", {"content": "not a list"}),
    ("deepseek", {}),
    ("google", {"candidates": []}),
    ("openai", {"choices": [{"message": {"content": None}}]}),
    ("anthropic", {"content": [{"text": None}]}),
    ("anthropic", {"content": [{"text": 7}]}),
    ("google", {"candidates": [{"content": {"parts": [{"text": None}]}}]}),
])
async def test_malformed_body_returns_fallback(make_client, post: PostData, provider: str, malformed) -> None:
    client, recorder = make_client(lambda r: httpx.Response(200, json=malformed))
    config = ProviderConfig(provider=provider, api_key="k")

    result = await ExplanationService(client=client).explain(post, "non-technical", config)

    assert result == fallback.generate(post, "non-technical")
    assert recorder.calls == 1


@pytest.mark.asyncio
async def test_custom_unknown_shape_returns_empty_string(make_client, post: PostData) -> None:
    client, _ = make_client(lambda r: httpx.Response(200, json={"data": {"answer": "hidden"}}))
    config = ProviderConfig(provider="custom", api_key="k", custom_endpoint="https://my-llm.internal/explain")

    assert await ExplanationService(client=client).explain(post, "simple", config) == ""


@pytest.mark.asyncio
async def test_custom_without_endpoint_returns_fallback(make_client, post: PostData) -> None:
    client, recorder = make_client(lambda r: httpx.Response(200, json={}))
    config = ProviderConfig(provider="custom", api_key="k")

    result = await ExplanationService(client=client).explain(post, "simple", config)

    assert result == fallback.generate(post, "simple")
    assert recorder.calls == 0


@pytest.mark.asyncio
async def test_transport_failure_returns_fallback(make_client, post: PostData, openai_config: ProviderConfig) -> None:
    def fail(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client, recorder = make_client(fail)
    result = await ExplanationService(client=client).explain(post, "simple", openai_config)

    assert result == fallback.generate(post, "simple")
    assert recorder.calls == 1


@pytest.mark.asyncio
async def test_custom_audience_reaches_prompt(make_client, post: PostData) -> None:
    client, recorder = make_client(lambda r: httpx.Response(200, json=openai_body("ok")))
    config = ProviderConfig(provider="openai", api_key="k", custom_audience="a sailor")

    await ExplanationService(client=client).explain(post, "custom", config)

    content = recorder.requests[0].content.decode()
    assert "as if I were a sailor" in content
    assert "appropriate for a sailor" in content


@pytest.mark.asyncio
async def test_attempt_classifies_failures(make_client, openai_config: ProviderConfig) -> None:
    client, _ = make_client(lambda r: httpx.Response(503, text="busy"))
    adapter = build_adapters(client)["openai"]

    result = await attempt(adapter, "prompt", "simple", openai_config)

    assert isinstance(result, ProviderFailure)
    assert result.provider == "openai"
    assert result.kind == FailureKind.STATUS
    assert "503" in result.detail and "busy" in result.detail


@pytest.mark.asyncio
async def test_attempt_wraps_unexpected_errors(openai_config: ProviderConfig) -> None:
    class BrokenAdapter:
        name = "broken"

        async def call(self, prompt, level, config):
            raise RuntimeError("bug")

    result = await attempt(BrokenAdapter(), "prompt", "simple", openai_config)

    assert result == ProviderFailure("broken", FailureKind.UNEXPECTED, "RuntimeError: bug")


@pytest.mark.asyncio
async def test_attempt_success(make_client, openai_config: ProviderConfig) -> None:
    client, _ = make_client(lambda r: httpx.Response(200, json=openai_body("fine")))
    result = await attempt(build_adapters(client)["openai"], "prompt", "simple", openai_config)
    assert result == ProviderSuccess("fine")


@pytest.mark.asyncio
async def test_service_owns_default_client() -> None:
    service = ExplanationService()
    assert set(service.adapters) == {"openai", "anthropic", "deepseek", "google", "custom"}
    await service.aclose()
    assert service.client.is_closed


@pytest.mark.asyncio
async def test_attempt_rejects_non_string_result(openai_config: ProviderConfig) -> None:
    class NoneAdapter:
        name = "none"

        async def call(self, prompt, level, config):
            return None

    result = await attempt(NoneAdapter(), "prompt", "simple", openai_config)

    assert isinstance(result, ProviderFailure)
    assert result.kind == FailureKind.SHAPE


@pytest.mark.asyncio
@pytest.mark.parametrize("provider, data", [
    ("anthropic", {"content": [{"text": None}]}),
    ("google", {"candidates": [{"content": {"parts": [{"text": None}]}}]}),
])
async def test_null_text_always_yields_string(make_client, post: PostData, provider: str, data) -> None:
    client, _ = make_client(lambda r: httpx.Response(200, json=data))
    config = ProviderConfig(provider=provider, api_key="k")

    text, used_fallback = await ExplanationService(client=client).explain_with_status(post, "simple", config)

    assert isinstance(text, str)
    assert text == fallback.generate(post, "simple")
    assert used_fallback is True


@pytest.mark.asyncio
@pytest.mark.parametrize("config, handler, expected", [
    (ProviderConfig(), lambda r: httpx.Response(200, json=openai_body("real")), True),
    (ProviderConfig(provider="cohere", api_key="k"), lambda r: httpx.Response(200, json=openai_body("real")), True),
    (ProviderConfig(api_key="k"), lambda r: httpx.Response(500), True),
    (ProviderConfig(api_key="k"), lambda r: httpx.Response(200, json=openai_body("real")), False),
])
async def test_explain_with_status_reports_fallback(make_client, post: PostData, config, handler, expected) -> None:
    client, _ = make_client(handler)

    text, used_fallback = await ExplanationService(client=client).explain_with_status(post, "simple", config)

    assert used_fallback is expected
    assert (text == fallback.generate(post, "simple")) is expected
