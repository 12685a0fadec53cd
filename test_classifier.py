"""
Classifier Tests

Validates:
1. Status and color normalization onto the canonical vocabulary
2. Parsing of free-text classifier replies
3. Fallback verdicts on errors and timeouts
4. The OpenAI-compatible classifier against a mocked client
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from core.models.canonical import RowColor, TrackingAnalysisResult


class TestNormalizeStatus:
    """Test normalize_status."""

    @pytest.mark.parametrize("raw,expected", [
        ("Delivered", "Delivered"),
        ("DELIVERED to consignee", "Delivered"),
        ("Delivery failed", "Failed"),
        ("In transit", "In-Transit"),
        ("Shipment on hold", "Stuck"),
        ("Delayed at hub", "Stuck"),
        ("Cancelled by courier", "Failed"),
        ("Unsuccessful attempt", "Failed"),
        ("Returned to shipper", "Return"),
        ("Customer unreachable", "Customer Not Picking Phone"),
        ("No phone response", "Customer Not Picking Phone"),
    ])
    def test_rules(self, raw, expected):
        from classifier.normalize import normalize_status
        assert normalize_status(raw) == expected

    def test_blank_is_in_transit(self):
        from classifier.normalize import normalize_status
        assert normalize_status("") == "In-Transit"
        assert normalize_status(None) == "In-Transit"

    def test_unknown_label_passes_through(self):
        from classifier.normalize import normalize_status
        assert normalize_status("Awaiting pickup") == "Awaiting pickup"


class TestNormalizeColor:
    """Test normalize_color."""

    def test_substring_match(self):
        from classifier.normalize import normalize_color
        assert normalize_color("green") == RowColor.GREEN
        assert normalize_color("Dark Orange") == RowColor.ORANGE
        assert normalize_color("RED") == RowColor.RED

    def test_defaults_to_yellow(self):
        from classifier.normalize import normalize_color
        assert normalize_color("") == RowColor.YELLOW
        assert normalize_color(None) == RowColor.YELLOW
        assert normalize_color("purple") == RowColor.YELLOW
        assert normalize_color(RowColor.GREY) == RowColor.YELLOW

    def test_accepts_enum(self):
        from classifier.normalize import normalize_color
        assert normalize_color(RowColor.RED) == RowColor.RED


class TestParseClassifierResponse:
    """Test parse_classifier_response."""

    def test_json_inside_chatter(self):
        from classifier.normalize import parse_classifier_response

        result = parse_classifier_response(
            'Sure! {"status": "delivered", "color": "green"} Hope that helps.'
        )
        assert result.status == "Delivered"
        assert result.color == RowColor.GREEN
        assert not result.is_fallback

    def test_missing_fields_use_defaults(self):
        from classifier.normalize import parse_classifier_response

        result = parse_classifier_response('{"color": "red"}')
        assert result.status == "In-Transit"
        assert result.color == RowColor.RED

    @pytest.mark.parametrize("raw", [None, "", "no json here", '["status"]', "{not json}"])
    def test_unparseable(self, raw):
        from classifier.normalize import parse_classifier_response

        result = parse_classifier_response(raw)
        assert result.status == "Analysis Failed"
        assert result.color == RowColor.ORANGE
        assert result.error_message == "Could not parse classifier response"
        assert result.is_fallback


class TestClassifyWithFallback:
    """Test classify_with_fallback."""

    def test_passes_verdict_through(self):
        from classifier.analysis import classify_with_fallback

        verdict = TrackingAnalysisResult(status="Stuck", color=RowColor.ORANGE)
        classifier = MagicMock()
        classifier.classify = AsyncMock(return_value=verdict)

        result = asyncio.run(classify_with_fallback(classifier, "text"))
        assert result == verdict
        classifier.classify.assert_awaited_once_with("text")

    def test_error_becomes_red_fallback(self):
        from classifier.analysis import classify_with_fallback

        classifier = MagicMock()
        classifier.classify = AsyncMock(side_effect=RuntimeError("connection refused"))

        result = asyncio.run(classify_with_fallback(classifier, "text"))
        assert result.status == "Analysis Failed"
        assert result.color == RowColor.RED
        assert result.error_message == "connection refused"

    def test_timeout_becomes_red_fallback(self):
        from classifier.analysis import classify_with_fallback
        from classifier.base import Classifier

        class SlowClassifier(Classifier):
            async def classify(self, text):
                await asyncio.sleep(5)

        result = asyncio.run(classify_with_fallback(SlowClassifier(), "text", timeout=0.01))
        assert result.status == "Analysis Failed"
        assert result.color == RowColor.RED
        assert "timed out" in result.error_message

    def test_fallback_counted_in_metrics(self):
        from classifier.analysis import classify_with_fallback
        from core.observability.metrics import get_metrics

        before = get_metrics().get_summary()["classifier"]["fallbacks"]
        classifier = MagicMock()
        classifier.classify = AsyncMock(side_effect=ValueError("bad"))
        asyncio.run(classify_with_fallback(classifier, "text"))

        assert get_metrics().get_summary()["classifier"]["fallbacks"] == before + 1


class TestAnalyzeTracking:
    """Test fetch -> normalize -> classify."""

    def test_normalized_text_reaches_classifier(self):
        from classifier.analysis import analyze_tracking

        fetcher = MagicMock()
        fetcher.fetch = AsyncMock(return_value='{"status":"In Transit","city":"Lahore"}')
        classifier = MagicMock()
        classifier.classify = AsyncMock(
            return_value=TrackingAnalysisResult(status="In-Transit", color=RowColor.YELLOW)
        )

        result = asyncio.run(analyze_tracking("https://t.example/1", fetcher, classifier))

        assert result.status == "In-Transit"
        fetcher.fetch.assert_awaited_once_with("https://t.example/1")
        text = classifier.classify.await_args.args[0]
        assert "[STATUS] status: In Transit" in text

    def test_fetch_error_propagates(self):
        from classifier.analysis import analyze_tracking
        from connectors.couriers import TrackingFetchError

        fetcher = MagicMock()
        fetcher.fetch = AsyncMock(side_effect=TrackingFetchError("404", "https://t.example/1", 404))
        classifier = MagicMock()
        classifier.classify = AsyncMock()

        with pytest.raises(TrackingFetchError):
            asyncio.run(analyze_tracking("https://t.example/1", fetcher, classifier))
        classifier.classify.assert_not_awaited()


class TestLLMClassifier:
    """Test the OpenAI-compatible classifier with a mocked client."""

    def _client(self, content):
        response = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
        )
        client = MagicMock()
        client.chat.completions.create = AsyncMock(return_value=response)
        client.close = AsyncMock()
        return client

    def test_classify_parses_reply(self):
        from classifier.llm_classifier import LLMClassifier
        from core.config import ClassifierConfig

        client = self._client('{"status": "Stuck", "color": "Orange"}')
        classifier = LLMClassifier(ClassifierConfig(model="local-model"), client=client)

        result = asyncio.run(classifier.classify("[STATUS] status: On hold"))

        assert result.status == "Stuck"
        assert result.color == RowColor.ORANGE
        kwargs = client.chat.completions.create.await_args.kwargs
        assert kwargs["model"] == "local-model"
        assert kwargs["messages"][0]["role"] == "system"
        assert "[STATUS] status: On hold" in kwargs["messages"][1]["content"]

    def test_empty_reply_is_unparseable(self):
        from classifier.llm_classifier import LLMClassifier

        classifier = LLMClassifier(client=self._client(None))
        result = asyncio.run(classifier.classify("text"))
        assert result.status == "Analysis Failed"
        assert result.color == RowColor.ORANGE

    def test_close_releases_client(self):
        from classifier.llm_classifier import LLMClassifier

        client = self._client("{}")
        classifier = LLMClassifier(client=client)
        asyncio.run(classifier.close())
        client.close.assert_awaited_once()


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
