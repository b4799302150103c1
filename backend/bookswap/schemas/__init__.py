"""Pydantic Schemas — validation for event payloads and API endpoints.

Invariants:
    - Schemas validate at system boundary (stream entries, HTTP bodies)
    - Domain types from core/ used for enum fields

Design Decisions:
    - Separate from models: schemas are wire contracts, models are persistence
"""
