"""
FastAPI routers grouped by domain (auth, cards, slug, public, analytics).

Each module exposes an ``APIRouter`` included by ``indi_api.app.create_app``.
Services are looked up on ``request.app.state`` so tests can swap them.
"""
