"""Threadline: discussion ingestion and task orchestration service."""

__version__ = "0.1.0"
