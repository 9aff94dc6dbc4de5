"""Per-user role selection, held in process memory."""

from __future__ import annotations

import threading
from typing import Dict, Optional

from chatrelay.constants.roles import get_role_by_id
from chatrelay.core.errors import InvalidRoleError
from chatrelay.infra.logging_config import get_logger
from chatrelay.schemas.role import Role

logger = get_logger(__name__)


class UserRoleService:
    """
    Maps user keys to role preset ids.

    Selections are not persisted; a restart returns every user to the default
    system prompt.
    """

    def __init__(self) -> None:
        self._roles: Dict[str, str] = {}
        self._lock = threading.Lock()

    def set_role(self, user_id: str, role_id: str) -> Role:
        role = get_role_by_id(role_id)
        if role is None:
            raise InvalidRoleError(f"Invalid role: {role_id}")
        with self._lock:
            self._roles[user_id] = role.id
        logger.info("Role for %s set to %s", user_id, role.id)
        return role

    def get_role(self, user_id: str) -> Optional[Role]:
        with self._lock:
            role_id = self._roles.get(user_id)
        return get_role_by_id(role_id) if role_id else None

    def system_prompt_for(self, user_id: str) -> Optional[str]:
        role = self.get_role(user_id)
        return role.system_prompt if role else None
