"""
pytest suite for the grocery marketplace backend.

- unit: pure domain rules and single services against in-memory SQLite
- integration: sessions, views and the change feed working together
- api: the FastAPI app over ASGITransport
"""
