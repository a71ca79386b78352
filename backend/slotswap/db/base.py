"""SQLAlchemy Declarative Base — metadata shared by users, slots and swap_requests.

Invariants:
    - Constraint and index names follow NAMING_CONVENTION, so Alembic diffs stay stable
    - Mapped[uuid.UUID] columns map to a native UUID on PostgreSQL, CHAR(32) elsewhere
"""

import uuid

from sqlalchemy import MetaData, Uuid
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm.attributes import set_committed_value

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
    type_annotation_map = {uuid.UUID: Uuid(as_uuid=True)}


def sync_instance(instance: Base, changes: dict) -> None:
    """Mirror an UPDATE already issued in SQL onto a loaded instance, without dirtying it."""
    for key, value in changes.items():
        set_committed_value(instance, key, value)
