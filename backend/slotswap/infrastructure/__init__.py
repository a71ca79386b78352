"""Infrastructure Layer — database engine, transaction coordination, logging.

Invariants:
    - Infrastructure never imports from services/ or api/
    - All SQLAlchemy failures leave this layer as DatabaseError

Design Decisions:
    - Transaction capability is an owned object passed to the coordinator, not a
      module-level cache: tests build one per case
"""
