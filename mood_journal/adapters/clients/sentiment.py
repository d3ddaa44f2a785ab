"""
Text sentiment classification through the Hugging Face inference API.

The classifier never fails a submission: any non-2xx status, timeout,
transport error or malformed payload is reduced to UNAVAILABLE.

Expected response shape:
    [[{"label": "POSITIVE", "score": 0.99}, {"label": "NEGATIVE", ...}]]
"""

import logging
import os
from typing import Any, Optional

import requests

from mood_journal.core.errors import ExternalServiceError
from mood_journal.core.models import SentimentLabel

# ============================================================================
# CONSTANTS & CONFIGURATION
# ============================================================================

DEFAULT_MODEL_URL = (
    "https://api-inference.huggingface.co/models/"
    "distilbert-base-uncased-finetuned-sst-2-english"
)
REQUEST_TIMEOUT = 10

logger = logging.getLogger(__name__)


class SentimentConfig:
    """Encapsulates inference endpoint configuration."""

    def __init__(self, api_token: Optional[str] = None, model_url: Optional[str] = None,
                 timeout: Optional[float] = None):
        """
        Initialize classifier configuration.

        Args:
            api_token: Bearer token (defaults to HF_API_TOKEN env var).
            model_url: Inference endpoint (defaults to HF_SENTIMENT_URL env var).
            timeout: Request timeout in seconds (defaults to HF_REQUEST_TIMEOUT env var).

        Raises:
            ValueError: If the timeout is not a positive number.
        """
        self.api_token = api_token or os.environ.get("HF_API_TOKEN")
        self.model_url = model_url or os.environ.get("HF_SENTIMENT_URL") or DEFAULT_MODEL_URL

        raw_timeout = timeout if timeout is not None else os.environ.get("HF_REQUEST_TIMEOUT", REQUEST_TIMEOUT)
        try:
            self.timeout = float(raw_timeout)
        except (TypeError, ValueError):
            raise ValueError(f"HF_REQUEST_TIMEOUT must be a number, got {raw_timeout!r}") from None
        if self.timeout <= 0:
            raise ValueError("HF_REQUEST_TIMEOUT must be positive")


# ============================================================================
# CLASSIFIERS
# ============================================================================

class SentimentClassifier:
    """Capability interface: text in, reduced sentiment label out."""

    def classify(self, text: str) -> SentimentLabel:
        raise NotImplementedError


class HuggingFaceSentimentClient(SentimentClassifier):
    """Handles Hugging Face inference API interactions."""

    def __init__(self, config: Optional[SentimentConfig] = None,
                 session: Optional[requests.Session] = None) -> None:
        self.config = config or SentimentConfig()
        self.session = session or requests.Session()

    def classify(self, text: str) -> SentimentLabel:
        """
        Classifies text sentiment.

        Args:
            text: Free-form journal text.

        Returns:
            POSITIVE or NEGATIVE, or UNAVAILABLE on any failure.
        """
        if not text or not text.strip():
            return SentimentLabel.UNAVAILABLE

        if not self.config.api_token:
            logger.warning("HF_API_TOKEN not set. Sentiment analysis unavailable.")
            return SentimentLabel.UNAVAILABLE

        try:
            payload = self._fetch_payload(text)
            label = self._parse_label(payload)
        except ExternalServiceError as e:
            logger.warning(f"[WARN] Sentiment analysis unavailable: {e}")
            return SentimentLabel.UNAVAILABLE

        logger.info(f"Sentiment classified as {label.value}")
        return label

    def _fetch_payload(self, text: str) -> Any:
        """
        Performs the single inference request.

        Raises:
            ExternalServiceError: On transport failure, non-2xx status or non-JSON body.
        """
        try:
            response = self.session.post(
                self.config.model_url,
                headers={
                    "Authorization": f"Bearer {self.config.api_token}",
                    "Content-Type": "application/json",
                },
                json={"inputs": text},
                timeout=self.config.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.Timeout as e:
            raise ExternalServiceError(f"Inference request timed out after {self.config.timeout}s") from e
        except requests.RequestException as e:
            raise ExternalServiceError(f"Inference request failed: {e}") from e
        except ValueError as e:
            raise ExternalServiceError("Inference response is not valid JSON") from e

    @staticmethod
    def _parse_label(payload: Any) -> SentimentLabel:
        """
        Extracts the top label from the inference payload.

        Labels other than positive/negative fold into UNAVAILABLE.

        Raises:
            ExternalServiceError: If the payload shape is not the expected one.
        """
        try:
            raw_label = payload[0][0]["label"]
        except (KeyError, IndexError, TypeError) as e:
            raise ExternalServiceError(f"Malformed inference payload: {str(payload)[:100]}") from e

        if not isinstance(raw_label, str):
            raise ExternalServiceError(f"Inference label is not a string: {raw_label!r}")

        normalized = raw_label.strip().lower()
        if normalized == SentimentLabel.POSITIVE.value:
            return SentimentLabel.POSITIVE
        if normalized == SentimentLabel.NEGATIVE.value:
            return SentimentLabel.NEGATIVE

        logger.info(f"Unsupported sentiment label '{raw_label}', treating as unavailable")
        return SentimentLabel.UNAVAILABLE
