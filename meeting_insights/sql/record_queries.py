"""
Meeting record queries.

Parameterized PostgreSQL queries over the `clients` table, which stores one
row per sales meeting. Column names are camelCase in the table and are
selected under the MeetingRecord field names.

Filters map one-to-one onto RecordQuery:
- start / end: half-open meetingDate range [start, end)
- processed: only rows whose transcription has been analyzed
- require_dimension: only rows with a non-empty value for one dimension
- closed: only closed (True) or open (False) deals
"""

from datetime import date
from typing import Any, Dict, List, Optional, Tuple

from meeting_insights.models.enums import Dimension


# =============================================================================
# CONSTANTS
# =============================================================================

RECORDS_TABLE: str = "clients"

DIMENSION_COLUMNS: Dict[Dimension, str] = {
    Dimension.SELLER: '"assignedSeller"',
    Dimension.INDUSTRY: '"industry"',
    Dimension.SENTIMENT: '"sentiment"',
    Dimension.URGENCY_LEVEL: '"urgencyLevel"',
    Dimension.DISCOVERY_SOURCE: '"discoverySource"',
    Dimension.OPERATION_SIZE: '"operationSize"',
}

RECORD_COLUMNS: str = """
    "name",
    "assignedSeller" AS "seller",
    "industry",
    "sentiment",
    "urgencyLevel",
    "discoverySource",
    "operationSize",
    "interactionVolume",
    "closed",
    "meetingDate"::date AS "meetingDate",
    "processed",
    "painPoints",
    "technicalRequirements"
"""


# =============================================================================
# RECORD QUERY
# =============================================================================

def get_records_query(
    start: Optional[date] = None,
    end: Optional[date] = None,
    processed: Optional[bool] = None,
    require_dimension: Optional[Dimension] = None,
    closed: Optional[bool] = None,
) -> Tuple[str, List[Any]]:
    """
    Build the record snapshot query and its positional parameters.

    Args:
        start: Inclusive lower bound on meetingDate
        end: Exclusive upper bound on meetingDate
        processed: Filter on the processed flag when not None
        require_dimension: Dimension whose column must be non-null and non-empty
        closed: Filter on the closed flag when not None

    Returns:
        (sql, params) for conn.fetch(sql, *params)

    Example:
        >>> sql, params = get_records_query(start=date(2024, 10, 1), processed=True)
        >>> params
        [datetime.date(2024, 10, 1), True]
    """
    conditions: List[str] = []
    params: List[Any] = []

    if start is not None:
        params.append(start)
        conditions.append(f'"meetingDate" >= ${len(params)}')
    if end is not None:
        params.append(end)
        conditions.append(f'"meetingDate" < ${len(params)}')
    if processed is not None:
        params.append(processed)
        conditions.append(f'"processed" = ${len(params)}')
    if closed is not None:
        params.append(closed)
        conditions.append(f'"closed" = ${len(params)}')
    if require_dimension is not None:
        column = DIMENSION_COLUMNS[require_dimension]
        conditions.append(f"{column} IS NOT NULL AND {column} <> ''")

    where = f"WHERE {' AND '.join(conditions)}" if conditions else ""

    sql = f"""
        SELECT {RECORD_COLUMNS}
        FROM {RECORDS_TABLE}
        {where}
        ORDER BY "meetingDate" ASC
    """
    return sql, params
