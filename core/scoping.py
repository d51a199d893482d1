"""
Role and scope model.

A user's authorization attributes are decoded once, when the ``User`` row is
loaded, into an immutable principal:

1. ``AdminPrincipal`` - unrestricted
2. ``HiringManagerPrincipal`` - global, or limited by a ``JobScope``
3. ``ReviewerPrincipal`` - explicit job/event assignments only

Each scope dimension is either ``UNRESTRICTED`` or ``Restricted(values)``. The
stored JSON columns conflate "never set" and "set to an empty list"; both decode
to ``UNRESTRICTED`` here so no call site re-interprets them.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, TypeVar, Union

from sqlalchemy import and_, or_, true
from sqlalchemy.sql.elements import ColumnElement

from database.models.users import ScopeMode, User, UserRole

T = TypeVar("T")


class ScopeParseError(ValueError):
    """Raised when a stored scope column cannot be decoded into a list."""

    pass


class UnknownRoleError(Exception):
    """Raised when a user carries a role the scoping rules do not cover."""

    pass


# ==================== Scope Dimensions ===================== #
class Unrestricted:
    """A scope dimension that imposes no constraint."""

    _instance: Optional["Unrestricted"] = None

    def __new__(cls) -> "Unrestricted":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def admits(self, value: Optional[str]) -> bool:
        return True

    def __repr__(self) -> str:
        return "UNRESTRICTED"


UNRESTRICTED = Unrestricted()


@dataclass(frozen=True)
class Restricted:
    """A scope dimension limited to ``values``. A missing value never matches."""

    values: frozenset[str]

    def admits(self, value: Optional[str]) -> bool:
        return value is not None and value in self.values


Dimension = Union[Unrestricted, Restricted]


def parse_dimension(raw: Any) -> Dimension:
    """
    Decode one stored scope column.

    Args:
        raw: ``None``, a JSON array as text, or an already-decoded list

    Returns:
        ``UNRESTRICTED`` for ``None``, ``""`` and ``[]``; otherwise ``Restricted``

    Raises:
        ScopeParseError: If the value is not a JSON list of strings
    """
    if raw is None:
        return UNRESTRICTED

    if isinstance(raw, str):
        if not raw.strip():
            return UNRESTRICTED
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ScopeParseError(f"Scope column is not valid JSON: {e}") from e

    if raw is None:
        return UNRESTRICTED
    if not isinstance(raw, (list, tuple, set, frozenset)):
        raise ScopeParseError(f"Scope column must be a list, got {type(raw).__name__}")

    values = frozenset(str(v) for v in raw)
    if not values:
        return UNRESTRICTED
    return Restricted(values)


# ==================== Job Scope ===================== #
@dataclass(frozen=True)
class JobScope:
    """
    Department/office restriction of a hiring manager.

    The combination rule lives in ``_combine`` and is shared by the imperative
    ``matches`` and the declarative ``job_clause`` so the two can never drift.
    """

    departments: Dimension = UNRESTRICTED
    offices: Dimension = UNRESTRICTED
    mode: ScopeMode = ScopeMode.OR

    @property
    def is_unrestricted(self) -> bool:
        return self.departments is UNRESTRICTED and self.offices is UNRESTRICTED

    def _combine(
        self,
        department_test: Callable[[Restricted], T],
        office_test: Callable[[Restricted], T],
        all_of: Callable[[T, T], T],
        any_of: Callable[[T, T], T],
        always: T,
    ) -> T:
        tests = []
        if isinstance(self.departments, Restricted):
            tests.append(department_test(self.departments))
        if isinstance(self.offices, Restricted):
            tests.append(office_test(self.offices))

        if not tests:
            return always
        if len(tests) == 1:
            return tests[0]
        if self.mode == ScopeMode.AND:
            return all_of(*tests)
        return any_of(*tests)

    def matches(self, department: Optional[str], office_id: Optional[str]) -> bool:
        """Whether a job (or notification context) with these attributes is in scope."""
        return self._combine(
            lambda d: d.admits(department),
            lambda o: o.admits(office_id),
            lambda a, b: a and b,
            lambda a, b: a or b,
            True,
        )

    def job_clause(
        self, department_column: ColumnElement, office_column: ColumnElement
    ) -> ColumnElement[bool]:
        """SQL form of ``matches`` over the given job columns."""
        return self._combine(
            lambda d: department_column.in_(sorted(d.values)),
            lambda o: office_column.in_(sorted(o.values)),
            and_,
            or_,
            true(),
        )


# ==================== Principals ===================== #
@dataclass(frozen=True)
class AdminPrincipal:
    user_id: str
    role: UserRole = field(default=UserRole.ADMIN, init=False)


@dataclass(frozen=True)
class HiringManagerPrincipal:
    user_id: str
    scope: JobScope = field(default_factory=JobScope)
    event_access: bool = True
    role: UserRole = field(default=UserRole.HIRING_MANAGER, init=False)

    @property
    def is_scoped(self) -> bool:
        return not self.scope.is_unrestricted


@dataclass(frozen=True)
class ReviewerPrincipal:
    user_id: str
    event_access: bool = True
    role: UserRole = field(default=UserRole.REVIEWER, init=False)


Principal = Union[AdminPrincipal, HiringManagerPrincipal, ReviewerPrincipal]


def _admin(user: User) -> Principal:
    return AdminPrincipal(user_id=user.id)


def _hiring_manager(user: User) -> Principal:
    scope = JobScope(
        departments=parse_dimension(user.scoped_departments),
        offices=parse_dimension(user.scoped_offices),
        mode=ScopeMode(user.scope_mode or ScopeMode.OR),
    )
    return HiringManagerPrincipal(
        user_id=user.id,
        scope=scope,
        event_access=_event_access(user),
    )


def _reviewer(user: User) -> Principal:
    return ReviewerPrincipal(user_id=user.id, event_access=_event_access(user))


def _event_access(user: User) -> bool:
    # Unset means the default grant
    return user.event_access is not False


PRINCIPAL_BUILDERS: dict[UserRole, Callable[[User], Principal]] = {
    UserRole.ADMIN: _admin,
    UserRole.HIRING_MANAGER: _hiring_manager,
    UserRole.REVIEWER: _reviewer,
}


def principal_from_user(user: User) -> Principal:
    """
    Decode a ``User`` row into its principal.

    Raises:
        UnknownRoleError: If the role has no scoping rules
        ScopeParseError: If a scope column is malformed
    """
    try:
        role = UserRole(user.role)
    except ValueError as e:
        raise UnknownRoleError(f"User {user.id} has unknown role {user.role!r}") from e

    builder = PRINCIPAL_BUILDERS.get(role)
    if builder is None:
        raise UnknownRoleError(f"No scoping rules for role {role.value}")
    return builder(user)


def as_principal(user_or_principal: Union[User, Principal]) -> Principal:
    """Accept either a loaded ``User`` or an already-decoded principal."""
    if isinstance(
        user_or_principal, (AdminPrincipal, HiringManagerPrincipal, ReviewerPrincipal)
    ):
        return user_or_principal
    return principal_from_user(user_or_principal)
