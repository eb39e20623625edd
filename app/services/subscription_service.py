from datetime import datetime

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import Caller
from app.repositories.user_repository import UserRepository
from app.schemas.question import SubscriptionInfo

UNLIMITED = -1


class SubscriptionService:
    def __init__(self, db: Session, free_tier_max_questions: int | None = None):
        self.db = db
        self.free_tier_max_questions = (
            settings.free_tier_max_questions if free_tier_max_questions is None else free_tier_max_questions
        )

    def free_tier(self, total_questions: int = 0) -> SubscriptionInfo:
        return SubscriptionInfo(max_questions=self.free_tier_max_questions, total_questions=total_questions)

    def resolve(self, caller: Caller, total_questions: int = 0) -> SubscriptionInfo | None:
        """Access tier for an authenticated caller; ``None`` for anonymous callers."""
        if not caller.is_authenticated:
            return None

        subscription = UserRepository(self.db).get_subscription(caller.user_id)
        if subscription is None or subscription.status != "ACTIVE" or subscription.end_date <= datetime.utcnow():
            return self.free_tier(total_questions)

        return SubscriptionInfo(
            access_level=subscription.plan,
            max_questions=UNLIMITED,
            is_active=True,
            plan_name=subscription.plan,
            end_date=subscription.end_date,
            total_questions=total_questions,
            can_access_all=True,
        )
