"""
ytclipper Backend — Application Package
=========================================

Accounts, sessions and timestamped notes for the ytclipper video note-taker.

Architecture:

    ┌─────────────────────────────────────┐
    │        Routes (API Layer)           │  ← HTTP, cookies, status codes
    ├─────────────────────────────────────┤
    │   Services (AccountService & co.)   │  ← account rules, tokens, hashing
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
