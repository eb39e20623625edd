from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import require_user
from app.core.security import Caller
from app.db.session import get_db
from app.repositories.question_repository import QuestionRepository
from app.schemas.question import PremiumStatusResponse
from app.services.subscription_service import SubscriptionService

router = APIRouter(prefix="/premium", tags=["premium"])


@router.get("/status", response_model=PremiumStatusResponse)
def subscription_status(caller: Caller = Depends(require_user), db: Session = Depends(get_db)):
    total = QuestionRepository(db).count()
    return PremiumStatusResponse(subscription=SubscriptionService(db).resolve(caller, total))
