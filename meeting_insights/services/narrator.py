"""
Insight narrator adapters.

The narrator turns a NarrativeRequest (a dataset-kind tag plus numeric
summary items) into prose. It is an external collaborator: it may be
unconfigured, it may fail, and its output may be malformed. Callers go
through meeting_insights.services.narrative, which never lets those
failures escape.

Adapters:
- AnthropicNarrator: Anthropic Messages API via the official SDK
- NullNarrator: never configured; every narration degrades to its fallback

Usage:
    narrator = narrator_from_settings(get_settings())
    if narrator.is_configured():
        text = await narrator.narrate(request)
"""

import json
import logging
from typing import Any, Callable, Dict, List, Optional, Protocol

from anthropic import AsyncAnthropic

from meeting_insights.core.config import Settings
from meeting_insights.models.enums import DatasetKind
from meeting_insights.models.schemas import NarrativeRequest

logger = logging.getLogger(__name__)


# Log only the start of narrator output
LOG_PREVIEW_LENGTH: int = 100

DIMENSION_LABELS: Dict[str, str] = {
    "industry": "Industry",
    "operationSize": "Operation Size",
    "urgencyLevel": "Urgency Level",
    "sentiment": "Sentiment",
    "discoverySource": "Discovery Source",
}


class Narrator(Protocol):
    def is_configured(self) -> bool:
        ...

    async def narrate(self, request: NarrativeRequest) -> str:
        ...


class NarratorNotConfiguredError(RuntimeError):
    """Raised when narrate() is called on an unconfigured narrator."""


class NullNarrator:
    """Narrator used when no API key is available."""

    def is_configured(self) -> bool:
        return False

    async def narrate(self, request: NarrativeRequest) -> str:
        raise NarratorNotConfiguredError("Insight narrator is not configured")


# =============================================================================
# Prompt Builders
# =============================================================================


def _lines(items: List[Dict[str, Any]], render: Callable[[Dict[str, Any]], str]) -> str:
    return "\n".join(f"- {render(item)}" for item in items)


def _industry_distribution_prompt(request: NarrativeRequest) -> str:
    rows = _lines(request.items, lambda item: f"{item['value']}: {item['count']} clients")
    return (
        "You are a sales analytics expert. Here is the distribution of clients by industry:\n"
        f"{rows}\n\n"
        "Write a concise insight (2-3 sentences) about where the client base is "
        "concentrated and what that means for the sales team. Return only the insight text."
    )


def _industry_conversion_prompt(request: NarrativeRequest) -> str:
    rows = _lines(
        request.items,
        lambda item: (
            f"{item['value']}: {item['conversionRate']}% conversion "
            f"({item['closed']}/{item['count']} deals)"
        ),
    )
    return (
        "You are a sales analytics expert. Conversion rates by industry "
        f"(only industries with at least {request.context.get('minimumSample', 3)} clients):\n"
        f"{rows}\n\n"
        "Write a concise insight (2-3 sentences) naming the best and worst converting "
        "industries and one recommendation. Return only the insight text."
    )


def _seller_correlation_prompt(request: NarrativeRequest) -> str:
    rows = _lines(
        request.items,
        lambda item: (
            f"{DIMENSION_LABELS.get(item['dimension'], item['dimension'])}: {item['value']} - "
            f"{item['successRate']:.0f}% success rate ({item['closed']}/{item['total']} deals), "
            f"{item['performanceVsAvg']:+.0f} points vs average"
        ),
    )
    return (
        f"You are a sales analytics expert. Describe seller \"{request.subject}\" in 2-3 "
        "sentences, leading with the industries where they perform best.\n"
        f"{rows}\n\n"
        "Name the specific industries from the data and suggest why the seller succeeds "
        "there. Return only the description."
    )


def _seller_timeline_prompt(request: NarrativeRequest) -> str:
    rows = _lines(
        request.items,
        lambda item: (
            f"{item['seller']}: {item['total']} closed deals, trend {item['trend']} "
            f"({item['changePercent']:.0f}% change), {item['avgPerPeriod']:.1f} per "
            f"{request.context.get('granularity', 'month')}"
        ),
    )
    return (
        "You are a sales analytics expert. Closed deals per seller over time:\n"
        f"{rows}\n\n"
        "Write 2-3 sentences comparing the sellers' momentum and who needs attention. "
        "Return only the insight text."
    )


def _monthly_timeline_prompt(request: NarrativeRequest) -> str:
    rows = _lines(
        request.items,
        lambda item: (
            f"{item['month']}: {item['totalMeetings']} meetings, {item['totalClosed']} closed "
            f"({item['conversionRate']}%), sentiment {item['avgSentiment']}, top industries "
            + ", ".join(industry["industry"] for industry in item.get("topIndustries", []))
        ),
    )
    return (
        "You are a sales analytics expert. Monthly sales meeting summary:\n"
        f"{rows}\n\n"
        "Return ONLY a JSON object with three arrays of short strings:\n"
        '{"keyFindings": [...], "reasons": [...], "recommendations": [...]}'
    )


def _volume_conversion_prompt(request: NarrativeRequest) -> str:
    rows = _lines(
        request.items,
        lambda item: f"{item['volumeRange']} interactions: {item['count']} clients, "
                     f"{item['conversionRate']}% conversion",
    )
    return (
        "You are a sales analytics expert. Conversion by client interaction volume:\n"
        f"{rows}\n\n"
        "Write 2-3 sentences on how interaction volume relates to closing deals. "
        "Return only the insight text."
    )


def _pain_points_prompt(request: NarrativeRequest) -> str:
    rows = _lines(
        request.items[:5],
        lambda item: f"{item['painPoint']}: {item['count']} mentions, "
                     f"{item['conversionRate']}% conversion rate",
    )
    context = request.context
    return (
        "You are a business analyst. Top client pain points:\n"
        f"{rows}\n\n"
        f"Distinct pain points: {context.get('distinctPainPoints', len(request.items))}\n"
        f"Total mentions: {context.get('totalMentions', 0)}\n"
        f"Average conversion rate: {context.get('averageConversionRate', 0)}%\n\n"
        "Write 2-3 sentences naming the most common pain point and two or three others "
        "with their mention counts and conversion rates, then one actionable "
        "recommendation. Return only the insight text."
    )


def _seller_feedback_prompt(request: NarrativeRequest) -> str:
    metrics = request.context.get("metrics", {})
    rows = _lines(
        request.items,
        lambda item: (
            f"{item['value']} ({item['dimension']}): {item['successRate']}% success rate "
            f"({item['closed']}/{item['total']} deals)"
        ),
    )
    return (
        "You are a strategic sales analyst helping assign sellers to the right industries.\n"
        f"Seller: {request.subject}\n"
        f"Total clients: {metrics.get('total', 0)}, closed deals: {metrics.get('closed', 0)}, "
        f"conversion rate: {metrics.get('conversionRate', 0)}%\n"
        f"Strongest segments:\n{rows or '- none with enough data'}\n\n"
        "Return ONLY a JSON array of 2-3 recommendation strings focused on industry assignment."
    )


PROMPT_BUILDERS: Dict[DatasetKind, Callable[[NarrativeRequest], str]] = {
    DatasetKind.INDUSTRY_DISTRIBUTION: _industry_distribution_prompt,
    DatasetKind.INDUSTRY_CONVERSION: _industry_conversion_prompt,
    DatasetKind.SELLER_CORRELATION: _seller_correlation_prompt,
    DatasetKind.SELLER_TIMELINE: _seller_timeline_prompt,
    DatasetKind.MONTHLY_TIMELINE: _monthly_timeline_prompt,
    DatasetKind.VOLUME_CONVERSION: _volume_conversion_prompt,
    DatasetKind.PAIN_POINTS: _pain_points_prompt,
    DatasetKind.SELLER_FEEDBACK: _seller_feedback_prompt,
}


def build_prompt(request: NarrativeRequest) -> str:
    """Render the prompt for a request's dataset kind."""
    return PROMPT_BUILDERS[request.kind](request)


# =============================================================================
# Anthropic Adapter
# =============================================================================


class AnthropicNarrator:
    """
    Narrator backed by the Anthropic Messages API.

    Attributes:
        model: Anthropic model name
        max_tokens: Token cap per narration
    """

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        max_tokens: int = 500,
        client: Optional[AsyncAnthropic] = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self._client = client
        if self._client is None and api_key:
            self._client = AsyncAnthropic(api_key=api_key)

    def is_configured(self) -> bool:
        return self._client is not None

    async def narrate(self, request: NarrativeRequest) -> str:
        """
        Send the request's prompt and return the response text.

        Raises:
            NarratorNotConfiguredError: If no API key was provided
            anthropic.APIError: If the API call fails
        """
        if self._client is None:
            raise NarratorNotConfiguredError("ANTHROPIC_API_KEY is not configured")

        prompt = build_prompt(request)
        logger.debug(
            f"Narrating {request.kind.value} ({len(request.items)} items): "
            f"{json.dumps(request.items, default=str)[:LOG_PREVIEW_LENGTH]}"
        )

        response = await self._client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )

        text = response.content[0].text if response.content else ""
        logger.info(f"{request.kind.value} insight generated: {text[:LOG_PREVIEW_LENGTH]}")
        return text


def narrator_from_settings(settings: Settings) -> Narrator:
    """AnthropicNarrator when a key is configured, NullNarrator otherwise."""
    if not settings.anthropic_api_key:
        logger.warning("ANTHROPIC_API_KEY not configured; narrated insights will use fallbacks")
        return NullNarrator()
    return AnthropicNarrator(
        api_key=settings.anthropic_api_key,
        model=settings.narrator_model,
        max_tokens=settings.narrator_max_tokens,
    )
