"""
Persistence adapters.

Services depend on SQLRepository (or a test double with the same methods)
instead of opening SQLAlchemy sessions themselves.
"""
