"""
Apostrophe Backend — Hugging Face Adapter Unit Tests (Mocked Transport)
=========================================================================

What we test:
    ✅ Text generation payload (parameters, bearer token) and extraction
    ✅ 503 "model loading" and 429 classification
    ✅ Embeddings keep input order; empty batch sends nothing
    ✅ Sentiment picks the top label from nested or flat lists
    ✅ Zero-shot results come back sorted by score
    ✅ Transcription strips data-URI prefixes and rejects bad base64 early
    ✅ Image bytes are written to the requested path
"""

import base64
import json

import httpx
import pytest

from apostrophe.exceptions import ValidationError
from apostrophe.services.huggingface_service import (
    ClassificationResult,
    HuggingFaceAdapter,
    SentimentResult,
    decode_audio,
)
from apostrophe.services.llm_base import ErrorKind, Failure, Success

from provider_mocks import RecordingTransport, raise_connect_error, respond

HF_KEY = "hf_test"


def make_adapter(settings, handler):
    transport = RecordingTransport(handler)
    return HuggingFaceAdapter(settings, transport=transport), transport


# ══════════════════════════════════════════════════════════════════════════
# Text generation
# ══════════════════════════════════════════════════════════════════════════


class TestTextGeneration:

    @pytest.mark.asyncio
    async def test_payload_and_auth(self, settings):
        adapter, transport = make_adapter(
            settings, respond(200, json=[{"generated_text": "hello"}])
        )

        await adapter.invoke("Write a haiku", HF_KEY, 5)

        request = transport.last_request
        assert str(request.url) == (
            "https://api-inference.huggingface.co/models/mistralai/Mistral-7B-Instruct-v0.3"
        )
        assert request.headers["Authorization"] == f"Bearer {HF_KEY}"
        assert transport.last_json() == {
            "inputs": "Write a haiku",
            "parameters": {
                "max_new_tokens": 1024,
                "temperature": 0.7,
                "return_full_text": False,
            },
        }

    @pytest.mark.asyncio
    async def test_extracts_generated_text(self, settings):
        adapter, _ = make_adapter(settings, respond(200, json=[{"generated_text": "hello"}]))
        assert await adapter.invoke("x", HF_KEY, 5) == Success("hello")

    @pytest.mark.asyncio
    async def test_model_loading_is_transient(self, settings):
        adapter, _ = make_adapter(
            settings,
            respond(503, json={"error": "Model is currently loading", "estimated_time": 20}),
        )
        result = await adapter.invoke("x", HF_KEY, 5)
        assert result.kind == ErrorKind.TRANSIENT_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_rate_limited(self, settings):
        adapter, _ = make_adapter(settings, respond(429, text="Too many requests"))
        result = await adapter.invoke("x", HF_KEY, 5)
        assert result.kind == ErrorKind.RATE_LIMITED

    @pytest.mark.asyncio
    async def test_unauthorized_is_provider_error(self, settings):
        adapter, _ = make_adapter(settings, respond(401, json={"error": "Invalid token"}))
        result = await adapter.invoke("x", HF_KEY, 5)
        assert result.kind == ErrorKind.PROVIDER_ERROR
        assert "Invalid token" in result.detail

    @pytest.mark.asyncio
    async def test_empty_list_is_empty_response(self, settings):
        adapter, _ = make_adapter(settings, respond(200, json=[]))
        result = await adapter.invoke("x", HF_KEY, 5)
        assert result.kind == ErrorKind.EMPTY_RESPONSE

    @pytest.mark.asyncio
    async def test_wrong_shape_is_malformed(self, settings):
        adapter, _ = make_adapter(settings, respond(200, json=[["nested"]]))
        result = await adapter.invoke("x", HF_KEY, 5)
        assert result.kind == ErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_missing_credential(self, settings):
        adapter, transport = make_adapter(settings, respond(200, json=[]))
        result = await adapter.invoke("x", None, 5)
        assert result.kind == ErrorKind.MISSING_CREDENTIAL
        assert transport.calls == 0

    @pytest.mark.asyncio
    async def test_network_failure(self, settings):
        adapter, _ = make_adapter(settings, raise_connect_error)
        result = await adapter.invoke("x", HF_KEY, 5)
        assert result.kind == ErrorKind.NETWORK_FAILURE


# ══════════════════════════════════════════════════════════════════════════
# Embeddings
# ══════════════════════════════════════════════════════════════════════════


class TestEmbeddings:

    @pytest.mark.asyncio
    async def test_vectors_in_input_order(self, settings):
        def handler(request):
            texts = json.loads(request.content)["inputs"]
            # Vector encodes the input position so order is observable
            return httpx.Response(200, json=[[float(i), 0.5] for i, _ in enumerate(texts)])

        adapter, transport = make_adapter(settings, handler)

        result = await adapter.embed(["alpha", "beta", "gamma"], HF_KEY)

        assert result == Success([[0.0, 0.5], [1.0, 0.5], [2.0, 0.5]])
        assert transport.last_json() == {
            "inputs": ["alpha", "beta", "gamma"],
            "options": {"wait_for_model": True},
        }
        assert transport.last_request.url.path.endswith(
            "sentence-transformers/all-MiniLM-L6-v2"
        )

    @pytest.mark.asyncio
    async def test_empty_batch_sends_nothing(self, settings):
        adapter, transport = make_adapter(settings, respond(500))
        assert await adapter.embed([], HF_KEY) == Success([])
        assert transport.calls == 0

    @pytest.mark.asyncio
    async def test_count_mismatch_is_malformed(self, settings):
        adapter, _ = make_adapter(settings, respond(200, json=[[0.1, 0.2]]))
        result = await adapter.embed(["a", "b"], HF_KEY)
        assert result.kind == ErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_non_numeric_vector_is_malformed(self, settings):
        adapter, _ = make_adapter(settings, respond(200, json=[["x", "y"]]))
        result = await adapter.embed(["a"], HF_KEY)
        assert result.kind == ErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_integer_components_become_floats(self, settings):
        adapter, _ = make_adapter(settings, respond(200, json=[[1, 0]]))
        result = await adapter.embed(["a"], HF_KEY)
        assert result == Success([[1.0, 0.0]])
        assert all(isinstance(x, float) for x in result.value[0])


# ══════════════════════════════════════════════════════════════════════════
# Sentiment and zero-shot classification
# ══════════════════════════════════════════════════════════════════════════


class TestSentiment:

    @pytest.mark.asyncio
    async def test_top_label_from_nested_list(self, settings):
        body = [[
            {"label": "negative", "score": 0.01},
            {"label": "positive", "score": 0.97},
            {"label": "neutral", "score": 0.02},
        ]]
        adapter, transport = make_adapter(settings, respond(200, json=body))

        result = await adapter.sentiment("I love this!", HF_KEY)

        assert result == Success(SentimentResult(label="positive", confidence=0.97))
        assert 0.0 <= result.value.confidence <= 1.0
        assert transport.last_json() == {"inputs": "I love this!"}

    @pytest.mark.asyncio
    async def test_flat_list_accepted(self, settings):
        body = [{"label": "negative", "score": 0.8}, {"label": "positive", "score": 0.2}]
        adapter, _ = make_adapter(settings, respond(200, json=body))
        result = await adapter.sentiment("meh", HF_KEY)
        assert result.value.label == "negative"

    @pytest.mark.asyncio
    async def test_empty_is_empty_response(self, settings):
        adapter, _ = make_adapter(settings, respond(200, json=[[]]))
        result = await adapter.sentiment("x", HF_KEY)
        assert result.kind == ErrorKind.EMPTY_RESPONSE

    @pytest.mark.asyncio
    async def test_entries_without_score_are_malformed(self, settings):
        adapter, _ = make_adapter(settings, respond(200, json=[[{"label": "positive"}]]))
        result = await adapter.sentiment("x", HF_KEY)
        assert result.kind == ErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    @pytest.mark.parametrize("score", [1.7, -0.2, 42])
    async def test_score_outside_unit_interval_is_malformed(self, settings, score):
        body = [[{"label": "positive", "score": score}]]
        adapter, _ = make_adapter(settings, respond(200, json=body))

        result = await adapter.sentiment("x", HF_KEY)

        assert result.kind == ErrorKind.MALFORMED_RESPONSE
        assert "outside" in result.detail


class TestClassification:

    @pytest.mark.asyncio
    async def test_sorted_by_descending_score(self, settings):
        body = {
            "sequence": "Buy milk and eggs",
            "labels": ["work", "shopping", "travel"],
            "scores": [0.2, 0.7, 0.1],
        }
        adapter, transport = make_adapter(settings, respond(200, json=body))

        result = await adapter.classify("Buy milk and eggs", ["work", "travel", "shopping"], HF_KEY)

        assert result == Success(
            ClassificationResult(labels=["shopping", "work", "travel"], scores=[0.7, 0.2, 0.1])
        )
        assert transport.last_json() == {
            "inputs": "Buy milk and eggs",
            "parameters": {"candidate_labels": ["work", "travel", "shopping"]},
        }

    @pytest.mark.asyncio
    async def test_length_mismatch_is_malformed(self, settings):
        body = {"labels": ["a", "b"], "scores": [0.9]}
        adapter, _ = make_adapter(settings, respond(200, json=body))
        result = await adapter.classify("x", ["a", "b"], HF_KEY)
        assert result.kind == ErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_error_in_200_body(self, settings):
        adapter, _ = make_adapter(settings, respond(200, json={"error": "bad labels"}))
        result = await adapter.classify("x", ["a"], HF_KEY)
        assert result == Failure(ErrorKind.PROVIDER_ERROR, "bad labels")


# ══════════════════════════════════════════════════════════════════════════
# Summarization
# ══════════════════════════════════════════════════════════════════════════


class TestSummarize:

    @pytest.mark.asyncio
    async def test_payload_and_extraction(self, settings):
        adapter, transport = make_adapter(
            settings, respond(200, json=[{"summary_text": "Short version."}])
        )

        result = await adapter.summarize("A long note ...", HF_KEY)

        assert result == Success("Short version.")
        assert transport.last_json() == {
            "inputs": "A long note ...",
            "parameters": {"max_length": 150, "min_length": 30},
        }
        assert transport.last_request.url.path.endswith("facebook/bart-large-cnn")


# ══════════════════════════════════════════════════════════════════════════
# Transcription
# ══════════════════════════════════════════════════════════════════════════


AUDIO = b"RIFF\x00\x00\x00\x00WAVEfmt "


class TestTranscription:

    def test_decode_plain_base64_defaults_to_wav(self):
        audio, content_type = decode_audio(base64.b64encode(AUDIO).decode())
        assert audio == AUDIO
        assert content_type == "audio/wav"

    def test_decode_strips_data_uri_and_keeps_mime(self):
        payload = "data:audio/webm;base64," + base64.b64encode(AUDIO).decode()
        audio, content_type = decode_audio(payload)
        assert audio == AUDIO
        assert content_type == "audio/webm"

    def test_decode_rejects_invalid_base64(self):
        with pytest.raises(ValidationError):
            decode_audio("not base64 at all!!")

    def test_decode_rejects_empty_payload(self):
        with pytest.raises(ValidationError):
            decode_audio("data:audio/wav;base64,")

    @pytest.mark.asyncio
    async def test_sends_raw_bytes(self, settings):
        adapter, transport = make_adapter(settings, respond(200, json={"text": " hello there"}))
        payload = "data:audio/wav;base64," + base64.b64encode(AUDIO).decode()

        result = await adapter.transcribe(payload, HF_KEY)

        assert result == Success(" hello there")
        request = transport.last_request
        assert request.content == AUDIO
        assert request.headers["Content-Type"] == "audio/wav"
        assert request.url.path.endswith("openai/whisper-large-v3-turbo")

    @pytest.mark.asyncio
    async def test_invalid_audio_never_sends(self, settings):
        adapter, transport = make_adapter(settings, respond(200, json={"text": "x"}))
        with pytest.raises(ValidationError):
            await adapter.transcribe("%%%", HF_KEY)
        assert transport.calls == 0


# ══════════════════════════════════════════════════════════════════════════
# Image generation
# ══════════════════════════════════════════════════════════════════════════


PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


class TestImageGeneration:

    @pytest.mark.asyncio
    async def test_writes_bytes_to_path(self, settings, tmp_path):
        adapter, transport = make_adapter(
            settings, respond(200, content=PNG, headers={"content-type": "image/png"})
        )
        target = tmp_path / "out" / "note-1" / "cover.png"

        result = await adapter.generate_image("a calm lake", HF_KEY, target)

        assert result == Success(target)
        assert target.read_bytes() == PNG
        assert transport.last_json() == {"inputs": "a calm lake"}
        assert transport.last_request.url.path.endswith("black-forest-labs/FLUX.1-dev")

    @pytest.mark.asyncio
    async def test_json_body_is_provider_error(self, settings, tmp_path):
        adapter, _ = make_adapter(settings, respond(200, json={"error": "NSFW content"}))
        target = tmp_path / "cover.png"

        result = await adapter.generate_image("x", HF_KEY, target)

        assert result.kind == ErrorKind.PROVIDER_ERROR
        assert not target.exists()

    @pytest.mark.asyncio
    async def test_empty_body_is_empty_response(self, settings, tmp_path):
        adapter, _ = make_adapter(
            settings, respond(200, content=b"", headers={"content-type": "image/png"})
        )
        result = await adapter.generate_image("x", HF_KEY, tmp_path / "cover.png")
        assert result.kind == ErrorKind.EMPTY_RESPONSE

    @pytest.mark.asyncio
    async def test_model_loading(self, settings, tmp_path):
        adapter, _ = make_adapter(settings, respond(503, text="loading"))
        result = await adapter.generate_image("x", HF_KEY, tmp_path / "cover.png")
        assert result.kind == ErrorKind.TRANSIENT_UNAVAILABLE
