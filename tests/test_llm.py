from collections.abc import Generator
from unittest.mock import MagicMock, patch

import httpx
import pytest
from openai import APIConnectionError, APIStatusError, RateLimitError

from ledger_ingest.classifiers.llm import LLMClassifier
from ledger_ingest.errors import QuotaExceeded, RateLimited
from ledger_ingest.integration.inference import (
    InferenceUnavailable,
    MalformedResponse,
    SemanticInference,
    parse_json_payload,
)
from ledger_ingest.models import Category

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def _completion(content: str) -> MagicMock:
    completion = MagicMock()
    completion.choices[0].message.content = content
    return completion


@pytest.fixture
def mock_openai_client() -> Generator[MagicMock, None, None]:
    with patch("ledger_ingest.integration.inference.OpenAI") as mock:
        yield mock


def test_parse_json_payload_tolerates_fences() -> None:
    payload = parse_json_payload('```json\n{"categoria": "OTHER"}\n```')
    assert payload == {"categoria": "OTHER"}


def test_parse_json_payload_rejects_text() -> None:
    with pytest.raises(MalformedResponse):
        parse_json_payload("I could not classify this transaction.")


def test_complete_json(mock_openai_client: MagicMock) -> None:
    mock_instance = mock_openai_client.return_value
    mock_instance.chat.completions.create.return_value = _completion('{"columnMapping": {"0": "fecha"}}')

    inference = SemanticInference(api_key="sk-fake", model="gpt-4o-mini")
    payload = inference.complete_json("instructions", "sample")

    assert payload == {"columnMapping": {"0": "fecha"}}
    _, kwargs = mock_instance.chat.completions.create.call_args
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["messages"][0] == {"role": "system", "content": "instructions"}
    # Throttling is never retried by the client.
    assert mock_openai_client.call_args.kwargs["max_retries"] == 0


def test_rate_limit_maps_to_rate_limited(mock_openai_client: MagicMock) -> None:
    mock_instance = mock_openai_client.return_value
    mock_instance.chat.completions.create.side_effect = RateLimitError(
        "Rate limit exceeded", response=httpx.Response(429, request=_REQUEST), body=None
    )

    with pytest.raises(RateLimited):
        SemanticInference(api_key="sk-fake").complete_json("i", "u")


def test_insufficient_quota_maps_to_quota_exceeded(mock_openai_client: MagicMock) -> None:
    mock_instance = mock_openai_client.return_value
    mock_instance.chat.completions.create.side_effect = RateLimitError(
        "You exceeded your current quota",
        response=httpx.Response(429, request=_REQUEST),
        body={"code": "insufficient_quota", "message": "You exceeded your current quota"},
    )

    with pytest.raises(QuotaExceeded):
        SemanticInference(api_key="sk-fake").complete_json("i", "u")


def test_payment_required_maps_to_quota_exceeded(mock_openai_client: MagicMock) -> None:
    mock_instance = mock_openai_client.return_value
    mock_instance.chat.completions.create.side_effect = APIStatusError(
        "Payment required", response=httpx.Response(402, request=_REQUEST), body=None
    )

    with pytest.raises(QuotaExceeded):
        SemanticInference(api_key="sk-fake").complete_json("i", "u")


def test_other_failures_are_unavailable(mock_openai_client: MagicMock) -> None:
    mock_instance = mock_openai_client.return_value
    mock_instance.chat.completions.create.side_effect = APIStatusError(
        "Server error", response=httpx.Response(500, request=_REQUEST), body=None
    )
    with pytest.raises(InferenceUnavailable):
        SemanticInference(api_key="sk-fake").complete_json("i", "u")

    mock_instance.chat.completions.create.side_effect = APIConnectionError(request=_REQUEST)
    with pytest.raises(InferenceUnavailable):
        SemanticInference(api_key="sk-fake").complete_json("i", "u")


def test_empty_answer_is_malformed(mock_openai_client: MagicMock) -> None:
    mock_instance = mock_openai_client.return_value
    mock_instance.chat.completions.create.return_value = _completion("")

    with pytest.raises(MalformedResponse):
        SemanticInference(api_key="sk-fake").complete_json("i", "u")


def test_from_env_without_key(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    assert SemanticInference.from_env() is None


def test_llm_classify(mock_openai_client: MagicMock) -> None:
    mock_instance = mock_openai_client.return_value
    mock_instance.chat.completions.create.return_value = _completion(
        '```json\n{"categoria": "inventory", "contrapartida": "PROVEEDOR TEXTIL", "confidence": 0.92}\n```'
    )

    classifier = LLMClassifier(SemanticInference(api_key="sk-fake"))
    res = classifier.classify("Compra de mercancia proveedor textil")

    assert res is not None
    assert res.category == Category.INVENTORY
    assert res.counterparty == "PROVEEDOR TEXTIL"
    assert res.confidence == 0.92
    assert res.source == "llm"
    mock_instance.chat.completions.create.assert_called_once()


def test_llm_classify_unknown_category(mock_openai_client: MagicMock) -> None:
    mock_instance = mock_openai_client.return_value
    mock_instance.chat.completions.create.return_value = _completion('{"categoria": "GROCERIES"}')

    classifier = LLMClassifier(SemanticInference(api_key="sk-fake"))

    assert classifier.classify("Whole Foods") is None


def test_llm_classify_degrades_on_throttling(mock_openai_client: MagicMock) -> None:
    mock_instance = mock_openai_client.return_value
    mock_instance.chat.completions.create.side_effect = RateLimitError(
        "Rate limit exceeded", response=httpx.Response(429, request=_REQUEST), body=None
    )

    classifier = LLMClassifier(SemanticInference(api_key="sk-fake"))

    assert classifier.classify("FACEBOOK ADS") is None


def test_llm_classify_defaults_confidence(mock_openai_client: MagicMock) -> None:
    mock_instance = mock_openai_client.return_value
    mock_instance.chat.completions.create.return_value = _completion('{"categoria": "OPERATIONAL"}')

    res = LLMClassifier(SemanticInference(api_key="sk-fake")).classify("Arriendo bodega")

    assert res is not None
    assert res.confidence == 0.8
    assert res.counterparty == "UNKNOWN"
