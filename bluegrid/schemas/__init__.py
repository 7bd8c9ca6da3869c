"""Pydantic request/response schemas package."""
