"""Closed set of account roles."""

import enum


class Role(str, enum.Enum):
    USER = "User"
    ADMIN = "ADMIN"

    @classmethod
    def parse_all(cls, values) -> frozenset["Role"]:
        """Convert stored role strings to Role members. Unknown names raise ValueError."""
        return frozenset(cls(v) for v in values)


DEFAULT_ROLES = (Role.USER,)
ADMIN_ROLES = (Role.USER, Role.ADMIN)


def can_administer(roles: frozenset[Role]) -> bool:
    """True if any of the roles grants the admin surface."""
    for role in roles:
        match role:
            case Role.ADMIN:
                return True
            case Role.USER:
                continue
    return False
