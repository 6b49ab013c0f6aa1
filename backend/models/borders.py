"""Cosmetic profile border catalog and per-user unlocks."""

import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import backref, relationship

from database import Base


class BorderRarity(str, enum.Enum):
    COMMON = "COMMON"
    RARE = "RARE"
    EPIC = "EPIC"
    LEGENDARY = "LEGENDARY"


RARITY_ORDER = {rarity.value: index for index, rarity in enumerate(BorderRarity)}


class UnlockType(str, enum.Enum):
    ACHIEVEMENT = "ACHIEVEMENT"
    PURCHASE = "PURCHASE"
    ADMIN = "ADMIN"


class Border(Base):
    """Catalog entry. A null or non-positive price means not purchasable."""

    __tablename__ = "borders"
    __table_args__ = (
        UniqueConstraint("code", name="uq_borders_code"),
    )

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(64), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    description = Column(String(512), nullable=True)
    image_url = Column(String(255), nullable=False)
    price = Column(Integer, nullable=True)
    rarity = Column(String(16), nullable=False, default=BorderRarity.COMMON.value)
    is_active = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    unlocks = relationship("BorderUnlock", back_populates="border")

    @property
    def is_purchasable(self) -> bool:
        return self.price is not None and self.price > 0


class BorderUnlock(Base):
    """Records that a user owns a border and how it was obtained."""

    __tablename__ = "border_unlocks"
    __table_args__ = (
        UniqueConstraint("user_id", "border_id", name="uq_border_unlock"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    border_id = Column(
        Integer,
        ForeignKey("borders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    unlock_type = Column(String(16), nullable=False)
    price_paid = Column(Integer, nullable=True)
    unlocked_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", backref=backref("border_unlocks", passive_deletes=True))
    border = relationship("Border", back_populates="unlocks")
