"""Shared FastAPI dependencies and router assembly."""
