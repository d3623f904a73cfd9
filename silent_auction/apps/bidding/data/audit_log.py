"""
Audit log data model
"""
from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column, Session

from silent_auction.apps.bidding.data import Base
from silent_auction.apps.bidding.domain.auction import UserId


class AuditCategory(StrEnum):
    BID = "BID"
    AUCTION = "AUCTION"
    LOT = "LOT"


class TAuditLog(Base):
    """
    Append-only audit trail. Entries are written in the same transaction as the change they describe.
    """

    __tablename__ = "audit_log"

    category: Mapped[str] = mapped_column(String(20), index=True)
    action: Mapped[str] = mapped_column(String(50), index=True)
    resource_type: Mapped[str] = mapped_column(String(20))
    resource_id: Mapped[str] = mapped_column(String(64), index=True)
    created_at: Mapped[datetime] = mapped_column(index=True)
    user_id: Mapped[UserId | None] = mapped_column(default=None)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, default_factory=dict)
    log_id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True, init=False)


def audit(
    session: Session,
    category: AuditCategory,
    action: str,
    resource_type: str,
    resource_id: str,
    created_at: datetime,
    user_id: UserId | None = None,
    **details: Any,
) -> None:
    """
    Appends an audit log entry to the current transaction
    """
    session.add(
        TAuditLog(
            category=str(category),
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            created_at=created_at,
            user_id=user_id,
            details=details,
        )
    )
