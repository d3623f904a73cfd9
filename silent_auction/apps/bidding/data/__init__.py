"""
Ledger data model

Notes
-----
Data model class names are prefixed with a 'T', which identifies them as classes that map to database tables.
This naming convention also avoids name collision with the similarly named domain model classes, e.g.,

`TAuction` is a data model class vs `Auction` is a domain model class
"""
import sqlite3
from datetime import datetime, UTC
from decimal import Decimal

from sqlalchemy import Integer, String, Numeric, DateTime, event, Engine
from sqlalchemy.orm import DeclarativeBase, MappedAsDataclass
from sqlalchemy.types import TypeDecorator

from silent_auction.apps.bidding.domain.auction import (
    AuctionId,
    LotId,
    SchoolId,
    UserId,
    AuctionStatus,
    LotStatus,
)
from silent_auction.apps.bidding.domain.bid import BidId, BidStatus


class UTCDateTime(TypeDecorator):
    """
    Stores timestamps as UTC and always returns timezone aware UTC datetimes.

    SQLite drops the timezone, which would otherwise make ledger timestamps incomparable with the clock.
    """

    # pylint: disable=too-many-ancestors,abstract-method

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"naive datetime is not allowed: {value}")
        value = value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(MappedAsDataclass, DeclarativeBase):
    """
    Data model base class.

    All data model classes should extend Base.
    """

    # pylint: disable=too-few-public-methods

    type_annotation_map = {
        AuctionId: String(26),
        LotId: String(26),
        BidId: String(26),
        SchoolId: String(64),
        UserId: String(64),
        AuctionStatus: Integer,
        LotStatus: Integer,
        BidStatus: Integer,
        datetime: UTCDateTime,
        Decimal: Numeric(5, 2),
    }


@event.listens_for(Engine, "connect")
def enable_sqlite_foreign_keys(dbapi_connection, _connection_record):
    """
    Enables foreign keys in sqlite
    """
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
