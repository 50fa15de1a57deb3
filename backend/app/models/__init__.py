from app.models.user import User
from app.models.refresh_token import RefreshToken
from app.models.task import Task

__all__ = [
    "User",
    "RefreshToken",
    "Task",
]
