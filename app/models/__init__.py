from app.models.ad import Ad
from app.models.message import Message
from app.models.user import User

__all__ = [
    "User",
    "Ad",
    "Message",
]
