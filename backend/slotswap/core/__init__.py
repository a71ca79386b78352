"""Core Layer — pure domain logic, no IO, no async, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - All functions are pure and deterministic (mutations only on the objects passed in)

Design Decisions:
    - Functional core separated from imperative shell: swap rules are testable
      without a database
"""
