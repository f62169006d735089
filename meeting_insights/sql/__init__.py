"""
SQL Query Module for Meeting Insights.

Provides parameterized SQL for reading meeting records; the analytics
themselves run in Python over the fetched snapshot.

Example usage:
    from meeting_insights.sql import get_records_query

    sql, params = get_records_query(start=date(2024, 10, 1), processed=True)
    rows = await conn.fetch(sql, *params)
"""

from meeting_insights.sql.record_queries import (
    DIMENSION_COLUMNS,
    RECORDS_TABLE,
    get_records_query,
)

__all__ = [
    "DIMENSION_COLUMNS",
    "RECORDS_TABLE",
    "get_records_query",
]
