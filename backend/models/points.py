"""Append-only point ledger."""

import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, JSON, String
from sqlalchemy.orm import backref, relationship

from database import Base


class PointTransactionType(str, enum.Enum):
    EARNED = "EARNED"
    SPENT = "SPENT"
    ACHIEVEMENT_REWARD = "ACHIEVEMENT_REWARD"
    ADMIN_GIVEN = "ADMIN_GIVEN"


class PointTransaction(Base):
    """One signed change to a user's balance. Rows are never updated."""

    __tablename__ = "point_transactions"
    __table_args__ = (
        CheckConstraint("amount <> 0", name="ck_point_transactions_amount_nonzero"),
        Index("ix_point_transactions_user_created", "user_id", "created_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    transaction_type = Column(String(32), nullable=False)
    amount = Column(Integer, nullable=False)
    description = Column(String(255), nullable=True)
    metadata_json = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", backref=backref("point_transactions", passive_deletes=True))
