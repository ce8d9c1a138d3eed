"""Services Layer - the two pipelines that orchestrate IO around the pure core.

Invariants:
    - ingest_file: fetch -> extract -> quota -> embed -> index -> status
    - chat_pipeline: persist -> retrieve -> assemble -> stream -> persist
    - External clients are injected (Protocols from core/repository_protocols.py)
"""
