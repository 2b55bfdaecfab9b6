"""
PoolCare - back end for pool-maintenance businesses.

This package contains the complete application:
- core: Framework-agnostic business logic (pools, visits, recommendations)
- infrastructure: External service integrations (Snowflake, Claude, Google)
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
