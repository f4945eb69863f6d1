"""
Core utilities shared across the INDI cards API.

This package hosts:
- configuration helpers (env vars, feature flags)
- the error taxonomy translated to HTTP responses by the app factory
- cross-cutting services such as logging, password hashing and rate limits

Routers and services depend on these primitives instead of reading os.environ
or building HTTP errors on their own.
"""
