from __future__ import annotations

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "user": frozenset({"dealer", "admin"}),
    "dealer": frozenset({"user"}),
    "admin": frozenset({"user"}),
}


class RoleTransitionError(ValueError):
    """Raised with a message that can be shown to the admin as-is."""


def allowed_roles(current: str) -> frozenset[str]:
    return ALLOWED_TRANSITIONS.get(current, frozenset())


def check_role_transition(current: str, requested: str, *, banned: bool = False, locked: bool = False) -> None:
    if current not in ALLOWED_TRANSITIONS:
        raise RoleTransitionError(f"Unknown current role: {current}")
    if requested not in ALLOWED_TRANSITIONS:
        raise RoleTransitionError(f"Unknown role: {requested}")
    if banned or locked:
        raise RoleTransitionError("Cannot modify roles for banned or locked accounts.")
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise RoleTransitionError(f"Cannot change role from {current} to {requested}.")


def is_transition_allowed(current: str, requested: str) -> bool:
    try:
        check_role_transition(current, requested)
    except RoleTransitionError:
        return False
    return True
