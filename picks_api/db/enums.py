"""Helpers for configuring SQLAlchemy Enum columns."""

from __future__ import annotations

from enum import Enum

from sqlalchemy import Enum as SAEnum


def enum_values(enum_cls: type[Enum]) -> list[str]:
    """Return the list of values for ``enum_cls`` suitable for SAEnum."""

    return [member.value for member in enum_cls]


def enum_column(enum_cls: type[Enum], name: str, *, length: int = 32) -> SAEnum:
    """Return a non-native string Enum type storing member values."""

    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        length=length,
        values_callable=enum_values,
    )


__all__ = ["enum_column", "enum_values"]
