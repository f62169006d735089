"""
Meeting Insights Package.

FastAPI service layer over the sales-meeting analytics engine. Turns
historical meeting records into conversion rankings, seller/dimension
correlations, outlier-industry classification and short-horizon forecasts.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, clock, database, and dependencies
    - models: Pydantic schemas and enums
    - services: Aggregation, correlation, trend, forecast and narrative services
    - sql: Parameterized SQL queries for the record source
"""

__version__ = "1.0.0"
