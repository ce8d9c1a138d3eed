"""Briefly - chat with your PDF: ingestion, retrieval and grounded chat API.

Invariants:
    - Package root contains no executable code (import side-effects prohibited)
"""
