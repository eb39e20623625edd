from app.models.change_log import ChangeLog
from app.models.question import Question
from app.models.subscription import Subscription
from app.models.user import User
from app.models.user_note import UserNote
from app.models.user_progress import UserProgress

__all__ = [
    "ChangeLog",
    "Question",
    "Subscription",
    "User",
    "UserNote",
    "UserProgress",
]
