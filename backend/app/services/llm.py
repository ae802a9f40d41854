"""
Chat-model clients used for insights summarisation and sentiment scoring.

The model itself is an external collaborator: text in, JSON text out. Errors
from the OpenAI SDK are translated into the service's model error types here
so callers never handle SDK exceptions directly.
"""
import json
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import openai
from openai import OpenAI

from app.core.config import settings
from app.core.errors import BadUpstreamResponse, ModelQuotaExceeded, ModelUnavailable

logger = logging.getLogger(__name__)


@dataclass
class ModelReply:
    content: str
    model: Optional[str] = None


class ChatModel(Protocol):
    def complete(self, system: str, user: str, *, max_tokens: int) -> ModelReply: ...


class OpenAIChatModel:
    """JSON-mode chat completions against the OpenAI API."""

    def __init__(self, api_key: str, model: str, temperature: float = 0.2):
        self.client = OpenAI(api_key=api_key)
        self.model = model
        self.temperature = temperature

    def complete(self, system: str, user: str, *, max_tokens: int) -> ModelReply:
        try:
            completion = self.client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
                max_tokens=max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.RateLimitError as e:
            logger.error("Model quota/rate limit hit: %s", e)
            raise ModelQuotaExceeded() from e
        except openai.APIStatusError as e:
            if e.status_code == 429:
                raise ModelQuotaExceeded() from e
            logger.error("Model API error %s: %s", e.status_code, e)
            raise ModelUnavailable(details=str(e)) from e
        except openai.APIError as e:
            logger.error("Model request failed: %s", e)
            raise ModelUnavailable(details=str(e)) from e

        if completion.usage:
            logger.info(
                "Model %s usage: prompt=%s completion=%s",
                completion.model,
                completion.usage.prompt_tokens,
                completion.usage.completion_tokens,
            )

        content = (completion.choices[0].message.content or "").strip() if completion.choices else ""
        if not content:
            raise BadUpstreamResponse("Empty AI response")
        return ModelReply(content=content, model=completion.model)


def get_insights_model() -> ChatModel:
    if not settings.openai_api_key:
        raise ModelUnavailable("AI service not configured")
    return OpenAIChatModel(settings.openai_api_key, settings.insights_model)


SENTIMENT_SYSTEM = (
    "You are a sentiment rater. Return only a JSON object with key 'score' in [-1,1], "
    "where -1 is very negative, 0 is neutral, +1 very positive."
)


class SentimentClassifier:
    def __init__(self, model: ChatModel):
        self.model = model

    def score(self, text: str | None) -> float | None:
        """Sentiment of free text in [-1, 1], or None for blank input or an unusable reply."""
        if not text or not text.strip():
            return None
        reply = self.model.complete(SENTIMENT_SYSTEM, text, max_tokens=20)
        try:
            score = float(json.loads(reply.content)["score"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("Unusable sentiment reply %r: %s", reply.content[:200], e)
            return None
        if score != score:  # NaN
            return None
        return max(-1.0, min(1.0, score))


def get_sentiment_classifier() -> SentimentClassifier | None:
    if not settings.openai_api_key:
        return None
    return SentimentClassifier(OpenAIChatModel(settings.openai_api_key, settings.sentiment_model, temperature=0))
