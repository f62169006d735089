"""
Tests for the narrator adapters and prompt builders.

The Anthropic client is always mocked; no network calls are made.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from meeting_insights.models import DatasetKind, NarrativeRequest
from meeting_insights.services.narrator import (
    PROMPT_BUILDERS,
    AnthropicNarrator,
    NarratorNotConfiguredError,
    NullNarrator,
    build_prompt,
    narrator_from_settings,
)


SAMPLE_ITEMS = {
    DatasetKind.INDUSTRY_DISTRIBUTION: [{'value': 'Tech', 'count': 3}],
    DatasetKind.INDUSTRY_CONVERSION: [
        {'value': 'Tech', 'count': 3, 'closed': 2, 'conversionRate': 66.67}
    ],
    DatasetKind.SELLER_CORRELATION: [{
        'dimension': 'industry', 'value': 'Tech', 'total': 3, 'closed': 3,
        'successRate': 100.0, 'sellerAvgConversion': 50.0, 'overallAvg': 66.67,
        'performanceVsAvg': 33.33,
    }],
    DatasetKind.SELLER_TIMELINE: [{
        'seller': 'Ana', 'total': 6, 'trend': 'increasing', 'changePercent': 300.0,
        'avgPerPeriod': 2.0,
    }],
    DatasetKind.MONTHLY_TIMELINE: [{
        'month': 'November 2024', 'totalMeetings': 4, 'totalClosed': 1,
        'conversionRate': 25.0, 'avgSentiment': 'neutral',
        'topIndustries': [{'industry': 'Tech', 'count': 2, 'sentiment': 'neutral'}],
    }],
    DatasetKind.VOLUME_CONVERSION: [
        {'volumeRange': '0-50', 'count': 4, 'closed': 1, 'conversionRate': 25.0}
    ],
    DatasetKind.PAIN_POINTS: [
        {'painPoint': 'Tech support delays', 'count': 4, 'conversionRate': 75.0}
    ],
    DatasetKind.SELLER_FEEDBACK: [{
        'dimension': 'industry', 'value': 'Tech', 'total': 3, 'closed': 3, 'successRate': 100.0,
    }],
}


def anthropic_client(text: str = 'Tech dominates the pipeline.') -> Mock:
    client = Mock()
    client.messages.create = AsyncMock(
        return_value=SimpleNamespace(content=[SimpleNamespace(text=text)])
    )
    return client


class TestPrompts:
    """One prompt builder per dataset kind."""

    def test_every_kind_has_a_builder(self) -> None:
        assert set(PROMPT_BUILDERS) == set(DatasetKind)

    @pytest.mark.parametrize('kind', list(DatasetKind))
    def test_prompt_mentions_data(self, kind) -> None:
        request = NarrativeRequest(kind=kind, subject='Ana', items=SAMPLE_ITEMS[kind])

        prompt = build_prompt(request)

        assert prompt
        assert any(token in prompt for token in ('Tech', 'Ana', 'November 2024', '0-50'))

    def test_structured_prompts_ask_for_json(self) -> None:
        timeline = build_prompt(NarrativeRequest(
            kind=DatasetKind.MONTHLY_TIMELINE, items=SAMPLE_ITEMS[DatasetKind.MONTHLY_TIMELINE]
        ))
        feedback = build_prompt(NarrativeRequest(
            kind=DatasetKind.SELLER_FEEDBACK, subject='Ana', items=[]
        ))

        assert '"keyFindings"' in timeline
        assert 'JSON array' in feedback
        assert 'none with enough data' in feedback

    def test_pain_points_prompt_uses_top_five_and_totals(self) -> None:
        items = [
            {'painPoint': f'Issue {i}', 'count': 10 - i, 'conversionRate': 50.0}
            for i in range(7)
        ]

        prompt = build_prompt(NarrativeRequest(
            kind=DatasetKind.PAIN_POINTS,
            items=items,
            context={'distinctPainPoints': 7, 'totalMentions': 49, 'averageConversionRate': '50.0'},
        ))

        assert 'Issue 4: 6 mentions' in prompt
        assert 'Issue 5' not in prompt
        assert 'Total mentions: 49' in prompt


class TestAnthropicNarrator:
    """Anthropic Messages API adapter."""

    @pytest.mark.asyncio
    async def test_narrate(self) -> None:
        client = anthropic_client()
        narrator = AnthropicNarrator(api_key=None, model='test-model', max_tokens=200, client=client)
        request = NarrativeRequest(
            kind=DatasetKind.INDUSTRY_DISTRIBUTION,
            items=SAMPLE_ITEMS[DatasetKind.INDUSTRY_DISTRIBUTION],
        )

        text = await narrator.narrate(request)

        assert text == 'Tech dominates the pipeline.'
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs['model'] == 'test-model'
        assert kwargs['max_tokens'] == 200
        assert kwargs['messages'][0]['role'] == 'user'
        assert 'Tech: 3 clients' in kwargs['messages'][0]['content']

    @pytest.mark.asyncio
    async def test_empty_content(self) -> None:
        client = Mock()
        client.messages.create = AsyncMock(return_value=SimpleNamespace(content=[]))
        narrator = AnthropicNarrator(api_key=None, model='test-model', client=client)

        text = await narrator.narrate(NarrativeRequest(kind=DatasetKind.VOLUME_CONVERSION))

        assert text == ''

    @pytest.mark.asyncio
    async def test_without_key(self) -> None:
        narrator = AnthropicNarrator(api_key=None, model='test-model')

        assert not narrator.is_configured()
        with pytest.raises(NarratorNotConfiguredError):
            await narrator.narrate(NarrativeRequest(kind=DatasetKind.VOLUME_CONVERSION))

    @pytest.mark.asyncio
    async def test_api_errors_propagate(self) -> None:
        client = Mock()
        client.messages.create = AsyncMock(side_effect=TimeoutError('slow'))
        narrator = AnthropicNarrator(api_key=None, model='test-model', client=client)

        with pytest.raises(TimeoutError):
            await narrator.narrate(NarrativeRequest(kind=DatasetKind.VOLUME_CONVERSION))


class TestNarratorFromSettings:

    def test_no_key_gives_null_narrator(self, test_settings, caplog) -> None:
        narrator = narrator_from_settings(test_settings)

        assert isinstance(narrator, NullNarrator)
        assert not narrator.is_configured()
        assert 'ANTHROPIC_API_KEY not configured' in caplog.text

    def test_key_gives_anthropic_narrator(self, test_settings) -> None:
        settings = test_settings.model_copy(update={'anthropic_api_key': 'sk-test'})

        narrator = narrator_from_settings(settings)

        assert isinstance(narrator, AnthropicNarrator)
        assert narrator.is_configured()
        assert narrator.model == settings.narrator_model

    @pytest.mark.asyncio
    async def test_null_narrator_raises(self) -> None:
        with pytest.raises(NarratorNotConfiguredError):
            await NullNarrator().narrate(NarrativeRequest(kind=DatasetKind.VOLUME_CONVERSION))
