"""API Layer - FastAPI routes, dependencies and error handlers.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - Every user-scoped route resolves the caller through dependencies.get_current_user_id

Design Decisions:
    - Thin routes delegate to services/ pipelines
"""
