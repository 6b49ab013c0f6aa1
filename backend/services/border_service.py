"""Border catalog, purchases, grants and profile selection."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from exceptions import InsufficientPointsError, NotFoundError, PersistenceError, ValidationError
from models.borders import RARITY_ORDER, Border, BorderRarity, UnlockType
from models.points import PointTransactionType
from repositories.rewards import RewardRepository
from services.achievement_catalog import ActivityType
from services.reward_engine import RewardEngine


logger = logging.getLogger(__name__)

DEFAULT_BORDER_CODE = "default"

DEFAULT_BORDERS = [
    {
        "code": DEFAULT_BORDER_CODE,
        "name": "Default",
        "description": "Default border available to everyone",
        "image_url": "/borders/default.svg",
        "price": None,
        "rarity": BorderRarity.COMMON.value,
        "sort_order": 0,
    },
    {
        "code": "bronze",
        "name": "Bronze",
        "description": "Unlocked by the First Poster or Early Adopter achievement",
        "image_url": "/borders/bronze.svg",
        "price": None,
        "rarity": BorderRarity.COMMON.value,
        "sort_order": 10,
    },
    {
        "code": "silver",
        "name": "Silver",
        "description": "Unlocked by community achievements",
        "image_url": "/borders/silver.svg",
        "price": None,
        "rarity": BorderRarity.RARE.value,
        "sort_order": 20,
    },
    {
        "code": "gold",
        "name": "Gold",
        "description": "Unlocked by Discussion Starter or bought with points",
        "image_url": "/borders/gold.svg",
        "price": 500,
        "rarity": BorderRarity.EPIC.value,
        "sort_order": 30,
    },
    {
        "code": "crystal",
        "name": "Crystal",
        "description": "Unlocked by Helpful Member or bought with points",
        "image_url": "/borders/crystal.svg",
        "price": 1000,
        "rarity": BorderRarity.EPIC.value,
        "sort_order": 40,
    },
    {
        "code": "diamond",
        "name": "Diamond",
        "description": "Unlocked by Point Hunter or bought with points",
        "image_url": "/borders/diamond.svg",
        "price": 2000,
        "rarity": BorderRarity.LEGENDARY.value,
        "sort_order": 50,
    },
]


def ensure_default_borders(db: Session) -> int:
    """Insert or refresh the default border catalog by code.

    Returns the number of borders created.
    """
    created = 0
    for data in DEFAULT_BORDERS:
        border = db.query(Border).filter(Border.code == data["code"]).first()
        if border is None:
            db.add(Border(**data))
            created += 1
        else:
            for key, value in data.items():
                setattr(border, key, value)
    db.commit()
    if created:
        logger.info("Seeded %d default borders", created)
    return created


def _unlock_fields(unlock) -> dict:
    if unlock is None:
        return {"unlock_type": None, "unlocked_at": None, "price_paid": None}
    return {
        "unlock_type": unlock.unlock_type,
        "unlocked_at": unlock.unlocked_at,
        "price_paid": unlock.price_paid,
    }


class BorderService:
    """Service for border-related queries and unlocks."""

    def __init__(self, db: Session, user_id: int):
        self.db = db
        self.user_id = user_id
        self.repo = RewardRepository(db)

    def list_borders(self) -> list[dict]:
        """Active catalog annotated with this user's unlock status."""
        user = self._require_user()
        borders = self._load(self.repo.list_active_borders)
        unlocks = {unlock.border_id: unlock for unlock in self._load(self.repo.list_unlocks, self.user_id)}

        # Catalog order: sort_order, then rarity, then name
        borders.sort(key=lambda b: (b.sort_order, RARITY_ORDER.get(b.rarity, 99), b.name))

        return [
            self._serialize(border, unlocks.get(border.id), user.selected_border_id)
            for border in borders
        ]

    def list_unlocked(self) -> list[dict]:
        """Owned borders, newest first, followed by the default border."""
        user = self._require_user()
        unlocks = self._load(self.repo.list_unlocks, self.user_id)
        owned = [
            self._serialize(unlock.border, unlock, user.selected_border_id)
            for unlock in unlocks
        ]

        # Everyone may select the default border without an unlock row
        if not any(b["code"] == DEFAULT_BORDER_CODE for b in owned):
            default = self._load(self.repo.get_border_by_code, DEFAULT_BORDER_CODE)
            if default is not None and default.is_active:
                owned.append(self._serialize(default, None, user.selected_border_id))
        return owned

    def purchase(self, border_code: str) -> dict:
        """Buy a border with points.

        Owning the border already is not an error: the existing unlock is
        returned and nothing is charged.
        """
        user = self._require_user()
        border = self._require_border(border_code)

        if not border.is_purchasable:
            raise ValidationError(f"Border {border.name} cannot be bought with points")

        existing = self._load(self.repo.get_unlock, self.user_id, border.id)
        if existing is not None:
            return {
                "already_owned": True,
                "border": self._serialize(border, existing, user.selected_border_id),
                "points": self._load(self.repo.get_points, self.user_id),
            }

        try:
            if not self.repo.spend_points(self.user_id, border.price):
                available = self.repo.get_points(self.user_id) or 0
                self.db.rollback()
                raise InsufficientPointsError(required=border.price, available=available)

            if not self.repo.insert_border_unlock(
                self.user_id, border.id, UnlockType.PURCHASE.value, price_paid=border.price
            ):
                # A concurrent purchase won; undo the debit.
                self.db.rollback()
                return {
                    "already_owned": True,
                    "border": self._serialize(
                        border,
                        self.repo.get_unlock(self.user_id, border.id),
                        user.selected_border_id,
                    ),
                    "points": self.repo.get_points(self.user_id),
                }

            self.repo.record_spend(
                self.user_id,
                border.price,
                PointTransactionType.SPENT.value,
                description=f"Purchased border {border.name}",
                metadata={"border_code": border.code, "purchase_type": "border"},
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Border purchase failed for user %s", self.user_id)
            raise PersistenceError("Could not complete the purchase. Please try again later.") from e

        logger.info("User %s purchased border %s for %d points", self.user_id, border.code, border.price)
        RewardEngine(self.db, self.user_id).track(ActivityType.PURCHASE_COMPLETED)

        unlock = self._load(self.repo.get_unlock, self.user_id, border.id)
        return {
            "already_owned": False,
            "border": self._serialize(border, unlock, user.selected_border_id),
            "points": self._load(self.repo.get_points, self.user_id),
        }

    def grant(self, border_code: str) -> bool:
        """Unlock a border without charge. Returns False if already owned."""
        self._require_user()
        border = self._require_border(border_code, active_only=False)
        try:
            created = self.repo.insert_border_unlock(self.user_id, border.id, UnlockType.ADMIN.value)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Border grant failed for user %s", self.user_id)
            raise PersistenceError() from e
        return created

    def select(self, border_code: str) -> dict:
        """Equip an owned border on the user's profile."""
        self._require_user()
        border = self._require_border(border_code)
        unlock = self._load(self.repo.get_unlock, self.user_id, border.id)

        if border.code != DEFAULT_BORDER_CODE and unlock is None:
            raise ValidationError(f"You do not own the {border.name} border")

        try:
            self.repo.set_selected_border(self.user_id, border.id)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Border selection failed for user %s", self.user_id)
            raise PersistenceError() from e

        return self._serialize(border, unlock, border.id)

    def _require_user(self):
        user = self._load(self.repo.get_user, self.user_id)
        if user is None:
            raise NotFoundError(f"User {self.user_id} not found")
        return user

    def _require_border(self, border_code: str, active_only: bool = True) -> Border:
        if not border_code or not border_code.strip():
            raise ValidationError("border_code is required")
        border = self._load(self.repo.get_border_by_code, border_code.strip().lower())
        if border is None or (active_only and not border.is_active):
            raise NotFoundError(f"Border {border_code!r} not found")
        return border

    def _load(self, query, *args):
        try:
            return query(*args)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Loading borders failed for user %s", self.user_id)
            raise PersistenceError("Couldn't load borders right now") from e

    @staticmethod
    def _serialize(border: Border, unlock, selected_border_id: Optional[int]) -> dict:
        return {
            "code": border.code,
            "name": border.name,
            "description": border.description,
            "image_url": border.image_url,
            "price": border.price,
            "rarity": border.rarity,
            "sort_order": border.sort_order,
            "unlocked": unlock is not None or border.code == DEFAULT_BORDER_CODE,
            "selected": selected_border_id is not None and selected_border_id == border.id,
            **_unlock_fields(unlock),
        }
