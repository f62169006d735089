"""
Record sources.

The engine reads meeting records through the RecordSource protocol, one
immutable snapshot per query.

Key Components:
- RecordQuery: Half-open date range plus optional processed/closed flags and
  a required dimension; shared filter semantics for every source
- PostgresRecordSource: asyncpg pool over the `clients` table
- InMemoryRecordSource: a list of records, or a pandas DataFrame of them
- record_from_row: Row or dict to MeetingRecord (datetimes become dates,
  NULL text arrays become empty tuples)

Example:
    >>> source = InMemoryRecordSource.from_dataframe(pd.read_csv("meetings.csv"))
    >>> records = await source.fetch(RecordQuery(processed=True))

Note:
    Sources never catch their own errors. The engine logs a failed fetch and
    answers with an empty view or a degraded insight.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol, Tuple

import asyncpg
import pandas as pd

from meeting_insights.models.enums import Dimension
from meeting_insights.models.schemas import MeetingRecord
from meeting_insights.services.aggregation import extract_dimension
from meeting_insights.sql.record_queries import get_records_query

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecordQuery:
    """
    Filter for one record snapshot.

    Attributes:
        start: Inclusive lower bound on meetingDate
        end: Exclusive upper bound on meetingDate
        processed: Keep only records with this processed flag
        require_dimension: Keep only records with a non-empty value for it
        closed: Keep only records with this closed flag
    """
    start: Optional[date] = None
    end: Optional[date] = None
    processed: Optional[bool] = None
    require_dimension: Optional[Dimension] = None
    closed: Optional[bool] = None

    def matches(self, record: MeetingRecord) -> bool:
        if self.start is not None and record.meetingDate < self.start:
            return False
        if self.end is not None and record.meetingDate >= self.end:
            return False
        if self.processed is not None and record.processed != self.processed:
            return False
        if self.closed is not None and record.closed != self.closed:
            return False
        if self.require_dimension is not None:
            return extract_dimension(record, self.require_dimension) is not None
        return True


class RecordSource(Protocol):
    async def fetch(self, query: RecordQuery) -> List[MeetingRecord]:
        ...


def _text_items(value: Any) -> Tuple[str, ...]:
    """Text-array cell (Postgres text[] or a DataFrame list) as a tuple; NULL is empty."""
    if value is None:
        return ()
    return tuple(str(item) for item in value if item is not None)


def record_from_row(row: Mapping[str, Any]) -> MeetingRecord:
    """Convert a database row or dict into a MeetingRecord."""
    meeting_date = row["meetingDate"]
    if isinstance(meeting_date, datetime):
        meeting_date = meeting_date.date()

    volume = row.get("interactionVolume")
    return MeetingRecord(
        name=row.get("name"),
        seller=row.get("seller"),
        industry=row.get("industry"),
        sentiment=row.get("sentiment"),
        urgencyLevel=row.get("urgencyLevel"),
        discoverySource=row.get("discoverySource"),
        operationSize=row.get("operationSize"),
        interactionVolume=float(volume) if volume is not None else None,
        closed=bool(row.get("closed", False)),
        meetingDate=meeting_date,
        processed=bool(row.get("processed", True)),
        painPoints=_text_items(row.get("painPoints")),
        technicalRequirements=_text_items(row.get("technicalRequirements")),
    )


# =============================================================================
# In-Memory Source
# =============================================================================


class InMemoryRecordSource:
    """Record source over records held in memory."""

    def __init__(self, records: Iterable[MeetingRecord]):
        self._records = tuple(records)

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame) -> "InMemoryRecordSource":
        """
        Build a source from a DataFrame with MeetingRecord columns.

        NaN/NaT cells become None; meetingDate may hold dates, datetimes or
        ISO strings.
        """
        if df.empty:
            return cls([])

        frame = df.copy()
        # Cells may mix date-only and date-time ISO strings
        frame["meetingDate"] = pd.to_datetime(frame["meetingDate"], format="ISO8601").dt.date
        frame = frame.astype(object).where(frame.notna(), None)

        rows: List[Dict[str, Any]] = frame.to_dict(orient="records")
        return cls(record_from_row(row) for row in rows)

    async def fetch(self, query: RecordQuery) -> List[MeetingRecord]:
        return [record for record in self._records if query.matches(record)]


# =============================================================================
# Postgres Source
# =============================================================================


class PostgresRecordSource:
    """Record source backed by the asyncpg pool."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def fetch(self, query: RecordQuery) -> List[MeetingRecord]:
        sql, params = get_records_query(
            start=query.start,
            end=query.end,
            processed=query.processed,
            require_dimension=query.require_dimension,
            closed=query.closed,
        )

        async with self._pool.acquire() as conn:
            rows = await conn.fetch(sql, *params)

        records = [record_from_row(dict(row)) for row in rows]
        logger.debug(f"Fetched {len(records)} meeting records for {query}")
        return records
