"""Infrastructure Layer - external service clients and cross-cutting concerns.

Invariants:
    - Infrastructure never imports from services/ or api/
    - All external calls mapped to typed BrieflyError subclasses

Design Decisions:
    - Thin adapters over SDK clients satisfying core/repository_protocols.py
"""
