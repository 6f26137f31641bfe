"""
Prompt & Pause Backend — Application Package Initializer
=========================================================

What: Marks the `app` directory as a Python package.
Who:  Used by Alembic, pytest, and uvicorn (`uvicorn app.main:app`).

Architecture Note:
    ┌─────────────────────────────────────┐
    │     Routes (API Layer)              │  ← HTTP concerns, auth dependencies
    ├─────────────────────────────────────┤
    │     Services (Business Logic)       │  ← quotas, prompts, digests, cron jobs
    ├─────────────────────────────────────┤
    │     Models & Schemas (Data)         │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │     Database (Persistence)          │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Outbound integrations (Gemini, Resend email, Slack webhooks) live in the
    services layer and are never called from routes directly.
"""

__version__ = "1.0.0"
