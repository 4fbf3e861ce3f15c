from enum import Enum
from typing import Type

from sqlalchemy import Enum as SqlEnum
from sqlalchemy.orm import DeclarativeBase, declared_attr


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models with automatic table naming."""

    @declared_attr.directive
    def __tablename__(cls) -> str:  # noqa: N805
        return cls.__name__.lower()


def value_enum(enum_cls: Type[Enum], name: str) -> SqlEnum:
    """Persist enum values (not member names) so rows match the migration."""

    return SqlEnum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )
