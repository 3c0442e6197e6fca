from fastapi import Header, status

from ..domain.enums import Role
from ..domain.lifecycle import Actor
from ..errors import PermissionDeniedError

_KNOWN_ROLES = {r.value for r in Role}


def get_current_actor(
    x_user_id: str | None = Header(None),
    x_user_roles: str | None = Header(None),
) -> Actor:
    """Actor asserted by the upstream identity provider.

    Roles arrive comma separated; roles this service does not know are ignored.
    """
    if not x_user_id:
        raise PermissionDeniedError("UNAUTHENTICATED", "missing X-User-Id header", status.HTTP_401_UNAUTHORIZED)
    roles = [r.strip().lower() for r in (x_user_roles or "").split(",")]
    return Actor.from_roles(x_user_id, [r for r in roles if r in _KNOWN_ROLES])
