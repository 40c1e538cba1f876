"""
Apostrophe Backend — Dispatcher Fallback Tests
================================================

What we test:
    ✅ First successful provider wins; later providers are never called
    ✅ Rate limits, outages and empty answers fall through to the next provider
    ✅ Providers without a credential are skipped without a request
    ✅ Total failure yields a message starting with the failure marker
    ✅ An adapter that raises is recorded, not propagated
"""

import pytest

from apostrophe.services.dispatcher import (
    FAILURE_MARKER,
    DispatchFailure,
    Dispatcher,
    DispatchSuccess,
    ProviderAttempt,
)
from apostrophe.services.gemini_service import GeminiAdapter
from apostrophe.services.huggingface_service import HuggingFaceAdapter
from apostrophe.services.llm_base import ErrorKind, ProviderAdapter, ProviderName
from apostrophe.services.ollama_service import OllamaAdapter

from provider_mocks import RecordingTransport, gemini_body, raise_connect_error, respond


def build_chain(settings, resolver, gemini, huggingface, ollama):
    """Dispatcher over mocked transports; returns the transports for call counts."""
    transports = {
        "gemini": RecordingTransport(gemini),
        "huggingface": RecordingTransport(huggingface),
        "ollama": RecordingTransport(ollama),
    }
    adapters = [
        GeminiAdapter(settings, transport=transports["gemini"]),
        HuggingFaceAdapter(settings, transport=transports["huggingface"]),
        OllamaAdapter(settings, transport=transports["ollama"]),
    ]
    return Dispatcher(settings, resolver, adapters=adapters), transports


@pytest.fixture
def both_keys(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")
    monkeypatch.setenv("HUGGINGFACE_API_KEY", "hf-key")


HF_OK = respond(200, json=[{"generated_text": "from huggingface"}])
OLLAMA_OK = respond(200, json={"response": "from ollama", "done": True})


class TestFallbackOrder:

    @pytest.mark.asyncio
    async def test_first_success_short_circuits(self, settings, resolver, both_keys):
        dispatcher, transports = build_chain(
            settings, resolver, respond(200, json=gemini_body("from gemini")), HF_OK, OLLAMA_OK
        )

        outcome = await dispatcher.generate("hello")

        assert isinstance(outcome, DispatchSuccess)
        assert outcome.text == "from gemini"
        assert outcome.provider == ProviderName.GEMINI
        assert outcome.attempts == []
        assert transports["gemini"].calls == 1
        assert transports["huggingface"].calls == 0
        assert transports["ollama"].calls == 0

    @pytest.mark.asyncio
    async def test_rate_limit_falls_through(self, settings, resolver, both_keys):
        dispatcher, transports = build_chain(
            settings, resolver, respond(429, text="quota"), HF_OK, OLLAMA_OK
        )

        outcome = await dispatcher.generate("hello")

        assert outcome.ok
        assert outcome.text == "from huggingface"
        assert outcome.provider == ProviderName.HUGGINGFACE
        assert outcome.attempts == [
            ProviderAttempt(ProviderName.GEMINI, ErrorKind.RATE_LIMITED, "HTTP 429")
        ]
        assert transports["gemini"].calls == 1
        assert transports["ollama"].calls == 0

    @pytest.mark.asyncio
    async def test_cloud_unreachable_uses_local_model(self, settings, resolver, both_keys):
        dispatcher, transports = build_chain(
            settings, resolver, raise_connect_error, raise_connect_error, OLLAMA_OK
        )

        outcome = await dispatcher.generate("hello")

        assert outcome.text == "from ollama"
        assert outcome.provider == ProviderName.OLLAMA
        assert [a.kind for a in outcome.attempts] == [
            ErrorKind.NETWORK_FAILURE,
            ErrorKind.NETWORK_FAILURE,
        ]

    @pytest.mark.asyncio
    async def test_model_loading_falls_through(self, settings, resolver, both_keys):
        dispatcher, _ = build_chain(
            settings, resolver, respond(500, text="boom"), respond(503, text="loading"), OLLAMA_OK
        )

        outcome = await dispatcher.generate("hello")

        assert outcome.provider == ProviderName.OLLAMA
        assert [a.kind for a in outcome.attempts] == [
            ErrorKind.PROVIDER_ERROR,
            ErrorKind.TRANSIENT_UNAVAILABLE,
        ]

    @pytest.mark.asyncio
    async def test_empty_answer_falls_through(self, settings, resolver, both_keys):
        dispatcher, _ = build_chain(
            settings, resolver, respond(200, json=gemini_body("")), HF_OK, OLLAMA_OK
        )

        outcome = await dispatcher.generate("hello")

        assert outcome.provider == ProviderName.HUGGINGFACE
        assert outcome.attempts[0].kind == ErrorKind.EMPTY_RESPONSE


class TestCredentials:

    @pytest.mark.asyncio
    async def test_no_credentials_goes_straight_to_local(self, settings, resolver):
        dispatcher, transports = build_chain(
            settings, resolver, respond(200, json=gemini_body("x")), HF_OK, OLLAMA_OK
        )

        outcome = await dispatcher.generate("hello")

        assert outcome.to_text() == "from ollama"
        assert transports["gemini"].calls == 0
        assert transports["huggingface"].calls == 0
        assert [(a.provider, a.kind) for a in outcome.attempts] == [
            (ProviderName.GEMINI, ErrorKind.MISSING_CREDENTIAL),
            (ProviderName.HUGGINGFACE, ErrorKind.MISSING_CREDENTIAL),
        ]

    @pytest.mark.asyncio
    async def test_local_text_returned_verbatim(self, settings, resolver):
        text = "  Line one\n\nline two with trailing space "
        dispatcher, _ = build_chain(
            settings, resolver, HF_OK, HF_OK, respond(200, json={"response": text})
        )

        outcome = await dispatcher.generate("hello")

        assert outcome.text == text

    @pytest.mark.asyncio
    async def test_key_file_picked_up_between_calls(self, settings, resolver):
        dispatcher, transports = build_chain(
            settings, resolver, respond(200, json=gemini_body("from gemini")), HF_OK, OLLAMA_OK
        )

        first = await dispatcher.generate("hello")
        resolver.persist(ProviderName.GEMINI, "g-key")
        second = await dispatcher.generate("hello")

        assert first.provider == ProviderName.OLLAMA
        assert second.provider == ProviderName.GEMINI
        assert transports["gemini"].last_request.url.params["key"] == "g-key"


class TestTotalFailure:

    @pytest.mark.asyncio
    async def test_nothing_configured_and_local_down(self, settings, resolver):
        # Default adapters; settings point Ollama at a closed port
        dispatcher = Dispatcher(settings, resolver)

        outcome = await dispatcher.generate("hello")

        assert isinstance(outcome, DispatchFailure)
        assert not outcome.ok
        assert outcome.message.startswith(FAILURE_MARKER)
        assert outcome.to_text() == outcome.message
        assert [a.provider for a in outcome.attempts] == [
            ProviderName.GEMINI,
            ProviderName.HUGGINGFACE,
            ProviderName.OLLAMA,
        ]
        assert outcome.attempts[-1].kind == ErrorKind.NETWORK_FAILURE

    @pytest.mark.asyncio
    async def test_message_lists_every_attempt(self, settings, resolver, both_keys):
        dispatcher, _ = build_chain(
            settings,
            resolver,
            respond(429),
            respond(503),
            respond(404, text="model not found"),
        )

        outcome = await dispatcher.generate("hello")

        assert outcome.message == (
            FAILURE_MARKER
            + "gemini: rate_limited (HTTP 429); "
            + "huggingface: transient_unavailable (model loading, try again); "
            + "ollama: provider_error (HTTP 404 - model not found)"
        )

    @pytest.mark.asyncio
    async def test_each_provider_called_once(self, settings, resolver, both_keys):
        dispatcher, transports = build_chain(
            settings, resolver, respond(500), respond(500), respond(500)
        )

        await dispatcher.generate("hello")

        assert [t.calls for t in transports.values()] == [1, 1, 1]


class ExplodingAdapter(ProviderAdapter):
    name = ProviderName.GEMINI
    requires_credential = False

    async def invoke(self, prompt, credential, timeout):
        raise RuntimeError("bug in adapter")


@pytest.mark.asyncio
async def test_adapter_exception_is_recorded(settings, resolver):
    ollama = OllamaAdapter(settings, transport=RecordingTransport(OLLAMA_OK))
    dispatcher = Dispatcher(settings, resolver, adapters=[ExplodingAdapter(), ollama])

    outcome = await dispatcher.generate("hello")

    assert outcome.text == "from ollama"
    assert outcome.attempts == [
        ProviderAttempt(ProviderName.GEMINI, ErrorKind.PROVIDER_ERROR, "unexpected RuntimeError")
    ]


@pytest.mark.asyncio
async def test_empty_chain_fails(settings, resolver):
    outcome = await Dispatcher(settings, resolver, adapters=[]).generate("hello")
    assert outcome.message == FAILURE_MARKER
