"""Services Layer — imperative shell around the pure swap rules.

Invariants:
    - Every write goes through a Scope opened by the TransactionCoordinator
    - Business decisions live in core/; services only read, delegate, and write

Design Decisions:
    - Stores are stateless; the scope (or a plain session for read projections) is passed
      per call so one store instance serves every request
"""
