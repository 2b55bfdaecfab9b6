"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- anthropic: Claude API client
- snowflake: Document persistence
- google: OAuth and Calendar over HTTPS

These wrappers translate between external formats and our domain models.
"""
