"""Subjects — the external entities that can receive a notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, Iterable


class SubjectKind(StrEnum):
    """Known subject tags. Any non-empty string is accepted by the ledger."""

    USER = "user"
    POST = "post"


@dataclass(frozen=True)
class Subject:
    """A tagged reference to an entity owned by some other system.

    Only ``subject_id`` and ``subject_kind`` identify the subject; the
    ``attributes`` mapping carries whatever the source knows about it (for
    example ``created_at`` or ``email``) and takes no part in equality.
    """

    subject_id: str
    subject_kind: str
    attributes: dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if not self.subject_id or not self.subject_kind:
            msg = "subject_id and subject_kind must be non-empty"
            raise ValueError(msg)

    def __str__(self) -> str:
        return f"{self.subject_kind}:{self.subject_id}"


@runtime_checkable
class SubjectSource(Protocol):
    """Produces the subjects currently eligible for a notification.

    Each call must return a fresh, finite sequence.
    """

    def __call__(self) -> Iterable[Subject] | AsyncIterable[Subject]:
        ...


class StaticSubjectSource:
    """A source over a fixed list of subjects."""

    def __init__(self, subjects: Iterable[Subject]) -> None:
        self._subjects = list(subjects)

    def __call__(self) -> list[Subject]:
        return list(self._subjects)
