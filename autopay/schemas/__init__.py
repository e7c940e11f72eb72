"""Pydantic Schemas — request/response contracts for the HTTP surface.

Invariants:
    - Input is validated here, before any service runs
    - Schemas convert into core dataclasses; core never sees Pydantic models
"""
