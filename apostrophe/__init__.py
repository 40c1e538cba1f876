"""
Apostrophe Backend — Application Package Initializer
======================================================

What: Local backend for the Apostrophe note editor.
Who:  Imported by uvicorn (apostrophe.main:app), pytest, and the
      `apostrophe-server` console script.

Architecture Note:
    This backend follows a layered architecture:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │  Services (Notes, Files, AI)        │  ← Business rules, provider fallback
    ├─────────────────────────────────────┤
    │  Provider Adapters (Gemini, HF,     │  ← One HTTP POST each, classified
    │  Ollama) + Credential Resolver      │     into Success / Failure
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy on SQLite
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
