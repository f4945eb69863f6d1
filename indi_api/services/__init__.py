"""
High-level use cases for the INDI cards API.

Each service module orchestrates repositories and pure domain helpers to
implement business rules (allocate a slug, record an event, aggregate a day,
compose dashboard metrics, etc.).

Routers (FastAPI endpoints) call these services instead of manipulating the
database or sessions directly.
"""
