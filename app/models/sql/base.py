"""Shared SQLAlchemy declarative base for the metadata store models.

Every ORM model must use this Base so Alembic sees its tables. Constraint
names follow a fixed convention so SQLite batch migrations can address them.
"""

from sqlalchemy import MetaData
from sqlalchemy.orm import declarative_base


NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "pk": "pk_%(table_name)s",
}

Base = declarative_base(metadata=MetaData(naming_convention=NAMING_CONVENTION))
