"""ORM Models — SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Slot and SwapRequest are mutated only through the swap engine once a swap touches them

Design Decisions:
    - One file per entity for locality
    - All models imported here so Base.metadata is complete before create_all/autogenerate
"""

from slotswap.models.user import User  # noqa: F401
from slotswap.models.slot import Slot  # noqa: F401
from slotswap.models.swap_request import SwapRequest  # noqa: F401
