from enum import Enum

from timetracker.core.errors import ForbiddenError


class Role(str, Enum):
    USER = "user"
    MANAGER = "manager"
    ADMIN = "admin"

    @property
    def level(self) -> int:
        return _RANK[self]


_RANK = {
    Role.USER: 1,
    Role.MANAGER: 2,
    Role.ADMIN: 3,
}


def role_level(role) -> int:
    """Numeric level for a Role or its stored string; unknown roles rank below user."""
    try:
        return Role(str(getattr(role, "value", role)).lower()).level
    except ValueError:
        return 0


def has_role(role, minimum: Role) -> bool:
    return role_level(role) >= minimum.level


def ensure_role(role, minimum: Role) -> None:
    if not has_role(role, minimum):
        raise ForbiddenError("You do not have permission to perform this action.")
