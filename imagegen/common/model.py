from datetime import datetime
from typing import Annotated

import sqlalchemy as sa

from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, MappedAsDataclass, declared_attr, mapped_column

from imagegen.utils.timezone import timezone

# String primary key holding a uuid4, generated by the application
id_key = Annotated[
    str,
    mapped_column(sa.String(36), primary_key=True, sort_order=-999, comment='Primary key (uuid4)'),
]


class TimeZone(sa.TypeDecorator[datetime]):
    """Timezone-aware datetime column, normalized to the configured timezone"""

    impl = sa.DateTime(timezone=True)
    cache_ok = True

    @property
    def python_type(self) -> type[datetime]:
        return datetime

    def process_bind_param(self, value: datetime | None, dialect) -> datetime | None:
        if value is not None and value.tzinfo is not None:
            value = timezone.f_datetime(value)
        return value

    def process_result_value(self, value: datetime | None, dialect) -> datetime | None:
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.tz_info)
        return value


class DateTimeMixin(MappedAsDataclass):
    """Created/updated timestamp mixin"""

    created_time: Mapped[datetime] = mapped_column(
        TimeZone,
        init=False,
        default_factory=timezone.now,
        sort_order=999,
        comment='Created at',
    )
    updated_time: Mapped[datetime | None] = mapped_column(
        TimeZone,
        init=False,
        onupdate=timezone.now,
        sort_order=999,
        comment='Updated at',
    )


class MappedBase(AsyncAttrs, DeclarativeBase):
    """
    Declarative base

    `AsyncAttrs <https://docs.sqlalchemy.org/en/20/orm/extensions/asyncio.html#sqlalchemy.ext.asyncio.AsyncAttrs>`__
    """

    @declared_attr.directive
    def __tablename__(cls) -> str:
        return cls.__name__.lower()


class DataClassBase(MappedAsDataclass, MappedBase):
    """Declarative dataclass base"""

    __abstract__ = True


class Base(DataClassBase, DateTimeMixin):
    """Declarative dataclass base with timestamp columns"""

    __abstract__ = True
