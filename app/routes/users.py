from fastapi import APIRouter, Depends

from app.deps import get_current_user
from app.models import User
from app.serializers import serialize_user

router = APIRouter()


@router.get("/me")
def get_me(user: User = Depends(get_current_user)):
    return serialize_user(user)
