from enum import Enum


class UserRole(str, Enum):
    USER = "USER"
    ADMIN = "ADMIN"


# A role satisfies every requirement listed for it; ADMIN is a superset of USER.
_ROLE_GRANTS: dict[UserRole, set[UserRole]] = {
    UserRole.ADMIN: {UserRole.ADMIN, UserRole.USER},
    UserRole.USER: {UserRole.USER},
}


def check_role(user_role: str | UserRole | None, required: str | UserRole) -> bool:
    if user_role is None:
        return False
    try:
        actual = UserRole(user_role)
        needed = UserRole(required)
    except ValueError:
        return False
    return needed in _ROLE_GRANTS[actual]
