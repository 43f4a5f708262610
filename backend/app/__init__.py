"""
DLE Backend - Application Package
===================================

What: The Daily Life Events diary backend.
Who:  Imported by uvicorn (app.main:app), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← Validation, cascades, pipelines
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database / Object Store / APIs    │  ← Async sessions, blobs, Gemini, Telegram
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
