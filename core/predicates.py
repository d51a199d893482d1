"""
Applicant access predicates.

A small boolean expression tree describing which applicants a user may see.
Every node can be evaluated against a loaded applicant (``evaluate``) or
translated into a SQLAlchemy WHERE clause (``to_clause``).

``MATCHES_NOTHING`` is an explicit sentinel, never an empty ``IN ()``. Callers
check ``predicate.matches_nothing`` and return an empty result without issuing a
query at all.
"""

from dataclasses import dataclass
from typing import Any, Iterable, Protocol, Union

from sqlalchemy import and_, false, or_, true
from sqlalchemy.sql.elements import ColumnElement


class ApplicantLike(Protocol):
    job_id: str | None
    event_id: str | None


# ==================== Leaves ===================== #
class _Constant:
    _value: bool

    @property
    def matches_nothing(self) -> bool:
        return not self._value

    def evaluate(self, applicant: ApplicantLike) -> bool:
        return self._value

    def to_clause(self, model: Any) -> ColumnElement[bool]:
        return true() if self._value else false()


class MatchesAll(_Constant):
    _value = True

    def __repr__(self) -> str:
        return "MatchesAll"


class MatchesNothing(_Constant):
    _value = False

    def __repr__(self) -> str:
        return "MatchesNothing"


MATCHES_ALL = MatchesAll()
MATCHES_NOTHING = MatchesNothing()


@dataclass(frozen=True)
class JobIn:
    """Applicant is linked to one of ``ids``."""

    ids: frozenset[str]
    matches_nothing = False

    def evaluate(self, applicant: ApplicantLike) -> bool:
        return applicant.job_id is not None and applicant.job_id in self.ids

    def to_clause(self, model: Any) -> ColumnElement[bool]:
        return model.job_id.in_(sorted(self.ids))


@dataclass(frozen=True)
class EventIn:
    """Applicant was sourced from one of the events in ``ids``."""

    ids: frozenset[str]
    matches_nothing = False

    def evaluate(self, applicant: ApplicantLike) -> bool:
        return applicant.event_id is not None and applicant.event_id in self.ids

    def to_clause(self, model: Any) -> ColumnElement[bool]:
        return model.event_id.in_(sorted(self.ids))


class GeneralPool:
    """Applicant has no job."""

    matches_nothing = False

    def evaluate(self, applicant: ApplicantLike) -> bool:
        return applicant.job_id is None

    def to_clause(self, model: Any) -> ColumnElement[bool]:
        return model.job_id.is_(None)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, GeneralPool)

    def __hash__(self) -> int:
        return hash(GeneralPool)

    def __repr__(self) -> str:
        return "GeneralPool"


GENERAL_POOL = GeneralPool()


# ==================== Composites ===================== #
@dataclass(frozen=True)
class AnyOf:
    children: tuple["Predicate", ...]
    matches_nothing = False

    def evaluate(self, applicant: ApplicantLike) -> bool:
        return any(child.evaluate(applicant) for child in self.children)

    def to_clause(self, model: Any) -> ColumnElement[bool]:
        return or_(*(child.to_clause(model) for child in self.children))


@dataclass(frozen=True)
class AllOf:
    children: tuple["Predicate", ...]
    matches_nothing = False

    def evaluate(self, applicant: ApplicantLike) -> bool:
        return all(child.evaluate(applicant) for child in self.children)

    def to_clause(self, model: Any) -> ColumnElement[bool]:
        return and_(*(child.to_clause(model) for child in self.children))


Predicate = Union[
    MatchesAll, MatchesNothing, JobIn, EventIn, GeneralPool, AnyOf, AllOf
]


# ==================== Constructors ===================== #
def job_in(ids: Iterable[str]) -> Predicate:
    ids = frozenset(ids)
    return JobIn(ids) if ids else MATCHES_NOTHING


def event_in(ids: Iterable[str]) -> Predicate:
    ids = frozenset(ids)
    return EventIn(ids) if ids else MATCHES_NOTHING


def any_of(*predicates: Predicate) -> Predicate:
    """OR, dropping ``MatchesNothing`` children and absorbing into ``MatchesAll``."""
    children = []
    for predicate in predicates:
        if predicate is MATCHES_ALL:
            return MATCHES_ALL
        if predicate is MATCHES_NOTHING:
            continue
        children.append(predicate)

    if not children:
        return MATCHES_NOTHING
    if len(children) == 1:
        return children[0]
    return AnyOf(tuple(children))


def all_of(*predicates: Predicate) -> Predicate:
    """AND, dropping ``MatchesAll`` children and absorbing into ``MatchesNothing``."""
    children = []
    for predicate in predicates:
        if predicate is MATCHES_NOTHING:
            return MATCHES_NOTHING
        if predicate is MATCHES_ALL:
            continue
        children.append(predicate)

    if not children:
        return MATCHES_ALL
    if len(children) == 1:
        return children[0]
    return AllOf(tuple(children))
