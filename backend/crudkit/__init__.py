"""
crudkit Backend — Application Package Initializer
=================================================

What: Marks the `crudkit` directory as a Python package.
Why:  Enables module imports like `from crudkit.config import settings`.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend is a declarative CRUD scaffold plus two feature modules:

    ┌─────────────────────────────────────┐
    │   Routes (ResourceRoute builders)   │  ← HTTP method/path/validation/docs
    ├─────────────────────────────────────┤
    │ Controllers (ResourceController +   │  ← pagination, ownership, hooks
    │   Profile / Notification features)  │
    ├─────────────────────────────────────┤
    │   Stores (DataStore registry)       │  ← filter_pagination, get_one_by_pk, ...
    ├─────────────────────────────────────┤
    │   Database (async SQLAlchemy)       │  ← engine + session lifecycle
    └─────────────────────────────────────┘

    Controllers never talk to SQLAlchemy directly; they only see the Store
    interface and the ResourceRecord capability of the returned models.
"""

__version__ = "1.0.0"
