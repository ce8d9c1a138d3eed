"""Core Layer - pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Plan resolution, prompt assembly, page selection and pagination are deterministic

Design Decisions:
    - Functional core separated from imperative shell: pipelines in services/ do the IO
"""
