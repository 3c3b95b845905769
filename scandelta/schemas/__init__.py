"""Pydantic schemas: session-independent records shared by engines and API."""
