"""Snowflake persistence: connections and document repositories."""
