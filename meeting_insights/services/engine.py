"""
Analytics Engine

Orchestrates one query: fetch a record snapshot, run the pure analytics
services over it, and (for narrated insights) hand the numeric payload to the
narrator.

The engine owns the two I/O-bound collaborators (RecordSource, Narrator) and
is the only place their failures are caught. A failed fetch is logged with
the traceback and turned into the same fallback an empty snapshot produces;
narrator failures are handled by the narrative builder. Computation is
synchronous over an immutable snapshot and nothing is cached between calls.

Usage:
    engine = AnalyticsEngine(
        source=InMemoryRecordSource(records),
        narrator=NullNarrator(),
        clock=fixed_clock(date(2024, 11, 15)),
    )
    projection = await engine.projection()
"""

import logging
from datetime import date
from typing import Dict, List, Optional

from meeting_insights.core.clock import Clock, system_clock
from meeting_insights.core.config import Settings, get_settings
from meeting_insights.models.enums import Dimension, NarrativeStatus, TimelineGranularity
from meeting_insights.models.schemas import (
    AnnualRanking,
    ConversionAnalysis,
    CorrelationEntry,
    DimensionGroup,
    IndustriesToWatch,
    IndustryRanking,
    MeetingRecord,
    NarrativeResult,
    NewIndustriesLastMonth,
    OverviewMetrics,
    PainPointStats,
    ProjectionResult,
    SellerCorrelationInsight,
    SellerFeedback,
    SellerInsight,
    SellerMetrics,
    SellerOfWeek,
    SellersTimeline,
    TechnicalRequirementCount,
    TimelineInsight,
    TimelineMetric,
    VolumeConversionBucket,
)
from meeting_insights.services import aggregation, correlation, forecasting, narrative, sellers
from meeting_insights.services.narrator import Narrator, NullNarrator
from meeting_insights.services.record_source import RecordQuery, RecordSource
from meeting_insights.services.reliability import find_industries_to_watch

logger = logging.getLogger(__name__)


INSIGHT_ERROR_MESSAGE: str = "Unable to generate insight at this time."
TIMELINE_INSIGHT_ERROR_MESSAGE: str = "Unable to generate timeline insights at this time."
FEEDBACK_ERROR_MESSAGE: str = "Unable to generate feedback at this time"

REASON_SOURCE_ERROR: str = "record source error"

ALL_RECORDS = RecordQuery()
PROCESSED_RECORDS = RecordQuery(processed=True)


class AnalyticsEngine:
    """
    Entry point for every analytics view and narrated insight.

    Attributes:
        source: Where meeting records are read from
        narrator: Insight narrator; NullNarrator degrades every narration
        clock: Supplies "today" for time-relative views
        settings: Policy constants
    """

    def __init__(
        self,
        source: RecordSource,
        narrator: Optional[Narrator] = None,
        clock: Clock = system_clock,
        settings: Optional[Settings] = None,
    ):
        self.source = source
        self.narrator = narrator or NullNarrator()
        self.clock = clock
        self.settings = settings or get_settings()

    async def _fetch(self, query: RecordQuery) -> Optional[List[MeetingRecord]]:
        """Snapshot for `query`, or None when the record source fails."""
        try:
            return await self.source.fetch(query)
        except Exception as e:
            logger.error(f"Error fetching meeting records ({query}): {e}", exc_info=True)
            return None

    async def _records(self, query: RecordQuery) -> List[MeetingRecord]:
        return await self._fetch(query) or []

    # =========================================================================
    # Descriptive Views
    # =========================================================================

    async def overview(self) -> OverviewMetrics:
        return aggregation.build_overview(await self._records(ALL_RECORDS))

    async def conversion_analysis(self) -> ConversionAnalysis:
        return aggregation.build_conversion_analysis(await self._records(PROCESSED_RECORDS))

    async def dimension_groups(self, dimension: Dimension) -> Dict[str, DimensionGroup]:
        records = await self._records(
            RecordQuery(processed=True, require_dimension=dimension)
        )
        return aggregation.aggregate_by_dimension(records, dimension)

    async def industries_ranking(self) -> List[IndustryRanking]:
        records = await self._records(
            RecordQuery(processed=True, require_dimension=Dimension.INDUSTRY)
        )
        return aggregation.rank_industries(records)

    async def industries_to_watch(self) -> IndustriesToWatch:
        groups = await self.dimension_groups(Dimension.INDUSTRY)
        return find_industries_to_watch(
            groups,
            minimum=self.settings.min_reliability_sample,
            p_low=self.settings.percentile_low,
            p_high=self.settings.percentile_high,
            adjustment=self.settings.conversion_threshold_adjustment,
            top_n=self.settings.top_industries,
        )

    async def new_industries_last_month(self) -> NewIndustriesLastMonth:
        today = self.clock()
        records = await self._records(RecordQuery(
            end=aggregation.month_start(today),
            processed=True,
            require_dimension=Dimension.INDUSTRY,
        ))
        return aggregation.find_new_industries_last_month(records, today)

    async def volume_vs_conversion(self) -> List[VolumeConversionBucket]:
        return aggregation.volume_vs_conversion(await self._records(PROCESSED_RECORDS))

    async def top_pain_points(self) -> List[PainPointStats]:
        return aggregation.top_pain_points(await self._records(PROCESSED_RECORDS))

    async def top_technical_requirements(self) -> List[TechnicalRequirementCount]:
        return aggregation.top_technical_requirements(await self._records(PROCESSED_RECORDS))

    async def timeline_metrics(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[TimelineMetric]:
        records = await self._records(RecordQuery(start=start, end=end))
        return aggregation.daily_timeline(records)

    # =========================================================================
    # Seller Views
    # =========================================================================

    async def seller_metrics(self) -> List[SellerMetrics]:
        return sellers.compute_seller_metrics(await self._records(PROCESSED_RECORDS))

    async def seller_insights(self) -> List[SellerInsight]:
        today = self.clock()
        records = await self._records(RecordQuery(start=aggregation.month_start(today, 1)))
        return sellers.generate_seller_insights(
            records, today, minimum=self.settings.min_reliability_sample
        )

    async def seller_of_week(self, week_start: Optional[date] = None) -> SellerOfWeek:
        records = await self._records(ALL_RECORDS)
        return sellers.find_seller_of_week(
            records, self.clock(), week_start=week_start, top_n=self.settings.top_sellers
        )

    async def annual_ranking(self, year: Optional[int] = None) -> AnnualRanking:
        year = year or self.clock().year
        records = await self._records(
            RecordQuery(start=date(year, 1, 1), end=date(year + 1, 1, 1))
        )
        return sellers.rank_sellers_for_year(records, year)

    async def sellers_timeline(
        self,
        granularity: TimelineGranularity = TimelineGranularity.WEEK,
    ) -> SellersTimeline:
        records = await self._records(RecordQuery(closed=True))
        return sellers.build_sellers_timeline(records, granularity)

    async def seller_correlations(self) -> List[CorrelationEntry]:
        return self._correlations(await self._records(PROCESSED_RECORDS))

    def _correlations(self, records: List[MeetingRecord]) -> List[CorrelationEntry]:
        return correlation.analyze_seller_correlations(
            records,
            minimum=self.settings.min_reliability_sample,
            adjustment=self.settings.conversion_threshold_adjustment,
            absolute_threshold=self.settings.correlation_absolute_threshold,
            self_margin=self.settings.correlation_self_margin,
        )

    # =========================================================================
    # Forecast
    # =========================================================================

    async def projection(self) -> ProjectionResult:
        """Next-week and next-month projection over the full history."""
        records = await self._fetch(ALL_RECORDS)
        if records is None:
            return forecasting.empty_projection(forecasting.PROJECTION_ERROR_MESSAGE)

        return forecasting.project_future(
            records,
            self.clock(),
            low_variance_threshold=self.settings.low_variance_threshold,
            monthly_threshold=self.settings.monthly_trend_threshold,
        )

    # =========================================================================
    # Narrated Insights
    # =========================================================================

    async def industry_distribution_insight(self) -> NarrativeResult:
        records = await self._fetch(
            RecordQuery(processed=True, require_dimension=Dimension.INDUSTRY)
        )
        if records is None:
            return NarrativeResult.degraded(INSIGHT_ERROR_MESSAGE, REASON_SOURCE_ERROR)

        groups = aggregation.aggregate_by_dimension(records, Dimension.INDUSTRY)
        return await narrative.narrate_industry_distribution(self.narrator, groups)

    async def industry_conversion_insight(self) -> NarrativeResult:
        records = await self._fetch(
            RecordQuery(processed=True, require_dimension=Dimension.INDUSTRY)
        )
        if records is None:
            return NarrativeResult.degraded(INSIGHT_ERROR_MESSAGE, REASON_SOURCE_ERROR)

        groups = aggregation.aggregate_by_dimension(records, Dimension.INDUSTRY)
        return await narrative.narrate_industry_conversion(
            self.narrator, groups, self.settings.min_reliability_sample
        )

    async def seller_correlation_insights(
        self,
        seller: Optional[str] = None,
    ) -> List[SellerCorrelationInsight]:
        """
        One narrated insight per seller (or only `seller`) over their top
        correlations by success rate.
        """
        records = await self._fetch(PROCESSED_RECORDS)
        if records is None:
            return []

        names = correlation.sellers_in(records)
        if seller is not None:
            names = [name for name in names if name == seller]

        top = correlation.top_correlations_by_seller(
            self._correlations(records), names, self.settings.top_correlations
        )

        return [
            await narrative.narrate_seller_correlations(self.narrator, name, top.get(name, []))
            for name in names
        ]

    async def seller_timeline_insight(
        self,
        granularity: TimelineGranularity = TimelineGranularity.MONTH,
    ) -> NarrativeResult:
        records = await self._fetch(RecordQuery(closed=True))
        if records is None:
            return NarrativeResult.degraded(INSIGHT_ERROR_MESSAGE, REASON_SOURCE_ERROR)

        timeline = sellers.build_sellers_timeline(records, granularity)
        return await narrative.narrate_seller_timeline(self.narrator, timeline)

    async def timeline_insight(self) -> TimelineInsight:
        records = await self._fetch(PROCESSED_RECORDS)
        if records is None:
            return TimelineInsight(
                status=NarrativeStatus.DEGRADED,
                keyFindings=[TIMELINE_INSIGHT_ERROR_MESSAGE],
            )
        return await narrative.narrate_monthly_timeline(self.narrator, records)

    async def volume_conversion_insight(self) -> NarrativeResult:
        records = await self._fetch(PROCESSED_RECORDS)
        if records is None:
            return NarrativeResult.degraded(INSIGHT_ERROR_MESSAGE, REASON_SOURCE_ERROR)

        buckets = aggregation.volume_vs_conversion(records)
        return await narrative.narrate_volume_conversion(self.narrator, buckets)

    async def pain_points_insight(self) -> NarrativeResult:
        records = await self._fetch(PROCESSED_RECORDS)
        if records is None:
            return NarrativeResult.degraded(INSIGHT_ERROR_MESSAGE, REASON_SOURCE_ERROR)

        pain_points = aggregation.top_pain_points(records)
        return await narrative.narrate_pain_points(self.narrator, pain_points)

    async def seller_feedback(self, seller: str) -> Optional[SellerFeedback]:
        """
        Assignment recommendations for one seller.

        Returns:
            SellerFeedback, or None when the seller has no processed meetings
        """
        records = await self._fetch(PROCESSED_RECORDS)
        if records is None:
            return SellerFeedback(
                seller=seller,
                status=NarrativeStatus.DEGRADED,
                recommendations=[FEEDBACK_ERROR_MESSAGE],
            )

        metrics = sellers.seller_conversion(records, seller)
        if metrics is None:
            return None

        correlations = [entry for entry in self._correlations(records) if entry.seller == seller]
        return await narrative.narrate_seller_feedback(self.narrator, metrics, correlations)
