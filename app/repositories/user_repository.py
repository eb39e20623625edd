from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.subscription import Subscription
from app.models.user import User


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_token(self, token: str) -> User | None:
        stmt = select(User).where(User.api_token == token)
        return self.db.scalars(stmt).first()

    def get_subscription(self, user_id: int) -> Subscription | None:
        stmt = select(Subscription).where(Subscription.user_id == user_id)
        return self.db.scalars(stmt).first()
