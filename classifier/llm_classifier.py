"""LLM-backed tracking classifier.

Talks to any OpenAI-compatible chat completion endpoint: the hosted API or
a local inference server (llama.cpp server, Ollama, vLLM) via ``base_url``.
"""

from typing import Optional

import openai

from classifier.base import Classifier
from classifier.normalize import parse_classifier_response
from core.config import ClassifierConfig
from core.models.canonical import TrackingAnalysisResult
from core.observability.logging import get_logger


logger = get_logger(__name__)


SYSTEM_PROMPT = """You are a courier tracking analyzer for an e-commerce business in Pakistan. Analyze tracking info and detect problems.
Return ONLY valid JSON: {"status": "Status", "color": "Color"}

Status options:
- Delivered: Package successfully delivered
- In-Transit: Moving normally through courier network
- Stuck: No movement for 2+ days at same location
- Failed: Delivery attempt failed
- Return: Being returned to sender
- Customer Not Picking Phone: Courier cannot contact customer

Color codes:
- Green: Delivered
- Yellow: In-Transit (normal)
- Orange: Stuck (warning - needs follow-up)
- Red: Failed, Return, or Customer not reachable (urgent action needed)

Look for keywords like: delivered, out for delivery, in transit, attempted delivery, returned, customer unreachable, contact failed, stuck, delay"""

USER_PROMPT = """Analyze this courier tracking information:

{text}

Return JSON with status and color."""


class LLMClassifier(Classifier):
    """Classifier backed by an OpenAI-compatible chat model.

    Usage:
        classifier = LLMClassifier(config.classifier)
        result = await classifier.classify(normalized_text)
    """

    def __init__(
        self,
        config: Optional[ClassifierConfig] = None,
        client: Optional[openai.AsyncOpenAI] = None,
    ):
        self.config = config or ClassifierConfig()
        self._client = client

    @property
    def client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            self._client = openai.AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
                timeout=self.config.timeout_seconds,
                max_retries=2,
            )
        return self._client

    def build_messages(self, text: str) -> list:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": USER_PROMPT.format(text=text)},
        ]

    async def classify(self, text: str) -> TrackingAnalysisResult:
        response = await self.client.chat.completions.create(
            model=self.config.model,
            messages=self.build_messages(text),
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )
        content = response.choices[0].message.content if response.choices else None

        logger.debug(
            "Classifier replied",
            extra_fields={"model": self.config.model, "reply_chars": len(content or "")},
        )
        return parse_classifier_response(content)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
