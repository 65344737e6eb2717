"""Core Layer — pure domain logic, no IO, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Normalization is pure and deterministic

Design Decisions:
    - Functional core separated from imperative shell
    - generation_run.py is the one stateful module here: it is the contract
      every backend implements, so it lives with the types it carries
"""
