# app/session/roles.py
"""
Role normalization and the role/approval rules used for navigation.

Roles are stored as free text in `profiles.rol` (old rows use lower-case
labels). Everything in the app reads them through `resolve_role`.
"""

from typing import Any, Literal, get_args

Role = Literal["Estudiante", "Barbero", "Administrador"]

ROLES: tuple[str, ...] = get_args(Role)
DEFAULT_ROLE: Role = "Estudiante"

# Roles allowed to create and manage courses.
INSTRUCTOR_ROLES: frozenset[str] = frozenset({"Barbero", "Administrador"})

DASHBOARD_PATH = "/dashboard"
PENDING_APPROVAL_PATH = "/pending-approval"


def _normalize(raw: Any) -> str:
    if not isinstance(raw, str):
        return ""
    value = raw.strip().lower()
    return value[:1].upper() + value[1:]


def parse_role(raw: Any) -> Role | None:
    """
    Strict role parsing for admin input.

    Returns:
        The normalized role, or None when the label is not a known role.
    """
    value = _normalize(raw)
    if value in ROLES:
        return value  # type: ignore[return-value]
    return None


def resolve_role(raw: Any) -> Role:
    """
    Normalize a stored role label.

    Lower-cases, capitalizes the first letter and checks it against the
    closed set. Anything else (unknown text, empty, non-string) becomes
    Estudiante. Idempotent: resolve_role(resolve_role(x)) == resolve_role(x).
    """
    return parse_role(raw) or DEFAULT_ROLE


def can_access_dashboard(habilitado: bool, role: str) -> bool:
    """
    Dashboard access rule.

    Approved accounts get in; Barbero accounts get in even before
    approval. An unapproved Administrador waits like anyone else.
    """
    return habilitado is True or role == "Barbero"


def landing_destination(habilitado: bool, role: str) -> str:
    """Where a freshly authenticated user is sent from the public pages."""
    if can_access_dashboard(habilitado, role):
        return DASHBOARD_PATH
    return PENDING_APPROVAL_PATH


def is_instructor(role: str) -> bool:
    return resolve_role(role) in INSTRUCTOR_ROLES
