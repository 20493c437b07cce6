"""
Unit tests for the remote Sentiment Classifier.

Network-facing paths are exercised through subclasses that replace
_request(); no mocking library is used.
"""

import asyncio
import unittest

import aiohttp

from sentiment_classifier import (
    DEFAULT_SENTIMENT,
    DEFAULT_SENTIMENT_MODEL,
    HF_API_BASE,
    INFERENCE_TIMEOUT_SECONDS,
    POLARITY_MAP,
    InferenceError,
    SentimentClassifier,
    SentimentLabel,
    SentimentResult,
    SentimentSource,
    parse_inference_payload,
)


class ScriptedClassifier(SentimentClassifier):
    """Classifier whose HTTP call returns or raises a scripted outcome."""

    def __init__(self, outcome, api_key: str = "hf_test"):
        super().__init__(api_key=api_key)
        self.outcome = outcome
        self.requests = []

    async def _request(self, text: str):
        self.requests.append(text)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


class TestConstants(unittest.TestCase):

    def test_timeout(self):
        self.assertAlmostEqual(INFERENCE_TIMEOUT_SECONDS, 10.0, places=5)

    def test_polarity_map(self):
        self.assertAlmostEqual(POLARITY_MAP[SentimentLabel.NEGATIVE], -0.8, places=5)
        self.assertAlmostEqual(POLARITY_MAP[SentimentLabel.NEUTRAL], 0.0, places=5)
        self.assertAlmostEqual(POLARITY_MAP[SentimentLabel.POSITIVE], 0.8, places=5)

    def test_default_sentiment(self):
        self.assertEqual(DEFAULT_SENTIMENT.label, SentimentLabel.NEUTRAL)
        self.assertAlmostEqual(DEFAULT_SENTIMENT.polarity, 0.0, places=5)
        self.assertAlmostEqual(DEFAULT_SENTIMENT.model_confidence, 0.5, places=5)
        self.assertTrue(DEFAULT_SENTIMENT.is_default)

    def test_endpoint(self):
        classifier = SentimentClassifier(api_key="x")
        self.assertEqual(classifier.endpoint, f"{HF_API_BASE}/{DEFAULT_SENTIMENT_MODEL}")


class TestParseInferencePayload(unittest.TestCase):

    def test_flat_legacy_label(self):
        result = parse_inference_payload([{"label": "LABEL_2", "score": 0.93}])
        self.assertEqual(result.label, SentimentLabel.POSITIVE)
        self.assertAlmostEqual(result.polarity, 0.8, places=5)
        self.assertAlmostEqual(result.model_confidence, 0.93, places=5)
        self.assertEqual(result.source, SentimentSource.MODEL)
        self.assertEqual(result.raw_label, "LABEL_2")

    def test_label_zero_is_negative(self):
        result = parse_inference_payload([{"label": "LABEL_0", "score": 0.6}])
        self.assertEqual(result.label, SentimentLabel.NEGATIVE)
        self.assertAlmostEqual(result.polarity, -0.8, places=5)

    def test_nested_picks_highest_score(self):
        payload = [[
            {"label": "neutral", "score": 0.2},
            {"label": "negative", "score": 0.7},
            {"label": "positive", "score": 0.1},
        ]]
        result = parse_inference_payload(payload)
        self.assertEqual(result.label, SentimentLabel.NEGATIVE)
        self.assertAlmostEqual(result.model_confidence, 0.7, places=5)

    def test_unknown_label_is_neutral_zero(self):
        result = parse_inference_payload([{"label": "MIXED", "score": 0.9}])
        self.assertEqual(result.label, SentimentLabel.NEUTRAL)
        self.assertAlmostEqual(result.polarity, 0.0, places=5)
        self.assertFalse(result.is_default)

    def test_confidence_clamped(self):
        result = parse_inference_payload([{"label": "positive", "score": 1.7}])
        self.assertAlmostEqual(result.model_confidence, 1.0, places=5)

    def test_error_payload_rejected(self):
        with self.assertRaises(InferenceError):
            parse_inference_payload({"error": "Model is currently loading"})

    def test_empty_list_rejected(self):
        with self.assertRaises(InferenceError):
            parse_inference_payload([])

    def test_empty_nested_rejected(self):
        with self.assertRaises(InferenceError):
            parse_inference_payload([[]])

    def test_bad_score_rejected(self):
        with self.assertRaises(InferenceError):
            parse_inference_payload([{"label": "positive", "score": "high"}])


class TestClassify(unittest.IsolatedAsyncioTestCase):

    async def test_model_result(self):
        classifier = ScriptedClassifier([{"label": "positive", "score": 0.95}])
        result = await classifier.classify("to the moon")

        self.assertEqual(result.label, SentimentLabel.POSITIVE)
        self.assertEqual(classifier.requests, ["to the moon"])
        self.assertEqual(classifier.get_stats(), {"model_results": 1, "default_results": 0})

    async def test_timeout_returns_default(self):
        classifier = ScriptedClassifier(asyncio.TimeoutError())
        result = await classifier.classify("hello")
        self.assertIs(result, DEFAULT_SENTIMENT)

    async def test_client_error_returns_default(self):
        classifier = ScriptedClassifier(aiohttp.ClientError("connection reset"))
        result = await classifier.classify("hello")
        self.assertIs(result, DEFAULT_SENTIMENT)

    async def test_http_error_returns_default(self):
        classifier = ScriptedClassifier(InferenceError("HTTP 503: loading"))
        result = await classifier.classify("hello")
        self.assertIs(result, DEFAULT_SENTIMENT)

    async def test_malformed_payload_returns_default(self):
        classifier = ScriptedClassifier({"unexpected": True})
        result = await classifier.classify("hello")

        self.assertIsInstance(result, SentimentResult)
        self.assertAlmostEqual(result.polarity, 0.0, places=5)
        self.assertTrue(result.is_default)

    async def test_invalid_json_returns_default(self):
        classifier = ScriptedClassifier(ValueError("Expecting value"))
        result = await classifier.classify("hello")
        self.assertTrue(result.is_default)

    async def test_missing_api_key_skips_request(self):
        classifier = ScriptedClassifier([{"label": "positive", "score": 0.9}], api_key="")
        result = await classifier.classify("hello")

        self.assertTrue(result.is_default)
        self.assertEqual(classifier.requests, [])

    async def test_empty_text_skips_request(self):
        classifier = ScriptedClassifier([{"label": "positive", "score": 0.9}])
        result = await classifier.classify("   ")

        self.assertTrue(result.is_default)
        self.assertEqual(classifier.requests, [])

    async def test_unreachable_endpoint_returns_default(self):
        # Nothing listens on the discard port; the real aiohttp path must not raise
        classifier = SentimentClassifier(
            api_key="hf_test",
            timeout_seconds=2.0,
            api_base="http://127.0.0.1:9/models"
        )
        result = await classifier.classify("hello")
        self.assertTrue(result.is_default)


if __name__ == "__main__":
    unittest.main()
