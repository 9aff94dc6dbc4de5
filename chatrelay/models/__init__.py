from chatrelay.models.user_context import UserContextRow

__all__ = [
    "UserContextRow",
]
