"""
Core business logic for pool maintenance.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
or any infrastructure concerns. Pool calculations, the record write path,
calendar mirroring and recommendations can all be tested in isolation.
"""
