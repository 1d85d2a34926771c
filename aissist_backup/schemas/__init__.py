"""Pydantic schemas for backup archives and operation results."""
