"""
Core business logic for the trainer portal.

This module is framework-agnostic - it doesn't import FastAPI, Snowflake,
or any infrastructure concerns. Workout assignment and adherence
classification can be tested without a database or an HTTP server.
"""
