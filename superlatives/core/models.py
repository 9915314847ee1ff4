"""Domain models for the superlatives game."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from superlatives.constants.session_constants import ROLE_ADMIN


def vote_id_for(question_id: str, participant_id: str) -> str:
    """Deterministic vote id; one document per participant per question."""
    return f"{question_id}_{participant_id}"


@dataclass(slots=True)
class Nominee:
    """Candidate within a single superlative."""

    name: str
    image_ref: str = ""

    def to_document(self) -> dict[str, Any]:
        return {"name": self.name, "image_ref": self.image_ref}

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> Nominee:
        return cls(name=str(data["name"]), image_ref=str(data.get("image_ref") or ""))


@dataclass(slots=True)
class WinnerEntry:
    """One winning nominee recorded on a frozen result."""

    nominee_name: str
    image_ref: str
    score: int
    is_tie: bool

    def to_document(self) -> dict[str, Any]:
        return {
            "nominee_name": self.nominee_name,
            "image_ref": self.image_ref,
            "score": self.score,
            "is_tie": self.is_tie,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> WinnerEntry:
        return cls(
            nominee_name=str(data["nominee_name"]),
            image_ref=str(data.get("image_ref") or ""),
            score=int(data.get("score", 0)),
            is_tie=bool(data.get("is_tie", False)),
        )


@dataclass(slots=True)
class FrozenResult:
    """Winner snapshot stored on a superlative once it has been revealed."""

    winners: list[WinnerEntry] = field(default_factory=list)

    @property
    def is_tie(self) -> bool:
        return len(self.winners) > 1

    def to_document(self) -> dict[str, Any]:
        return {"winners": [winner.to_document() for winner in self.winners]}

    @classmethod
    def from_document(cls, data: dict[str, Any] | None) -> FrozenResult | None:
        if data is None:
            return None
        return cls(winners=[WinnerEntry.from_document(item) for item in data.get("winners", [])])


@dataclass(slots=True)
class Superlative:
    """A voteable question with an ordered list of nominees."""

    id: str
    title: str
    order: int
    nominees: list[Nominee] = field(default_factory=list)
    frozen_result: FrozenResult | None = None

    def find_nominee(self, name: str) -> Nominee | None:
        return next((nominee for nominee in self.nominees if nominee.name == name), None)

    def to_document(self) -> dict[str, Any]:
        document: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "order": self.order,
            "nominees": [nominee.to_document() for nominee in self.nominees],
        }
        if self.frozen_result is not None:
            document["frozen_result"] = self.frozen_result.to_document()
        return document

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> Superlative:
        return cls(
            id=str(data["id"]),
            title=str(data["title"]),
            order=int(data["order"]),
            nominees=[Nominee.from_document(item) for item in data.get("nominees", [])],
            frozen_result=FrozenResult.from_document(data.get("frozen_result")),
        )


@dataclass(slots=True)
class Vote:
    """A participant's current choice on one superlative."""

    question_id: str
    nominee_name: str
    participant_id: str
    participant_role: str
    cast_at: datetime | None = None  # resolved by the store on first write

    @property
    def id(self) -> str:
        return vote_id_for(self.question_id, self.participant_id)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "question_id": self.question_id,
            "nominee_name": self.nominee_name,
            "participant_id": self.participant_id,
            "participant_role": self.participant_role,
            "cast_at": self.cast_at,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> Vote:
        return cls(
            question_id=str(data["question_id"]),
            nominee_name=str(data["nominee_name"]),
            participant_id=str(data["participant_id"]),
            participant_role=str(data.get("participant_role") or ""),
            cast_at=data.get("cast_at"),
        )


@dataclass(slots=True)
class SessionState:
    """The single shared cursor every client follows."""

    session_started: bool = False
    current_question_index: int = 0
    result_revealed: bool = False
    all_questions_completed: bool = False
    join_url: str = ""

    @property
    def is_voting_open(self) -> bool:
        return (
            self.session_started
            and not self.all_questions_completed
            and not self.result_revealed
        )

    def to_document(self) -> dict[str, Any]:
        return {
            "session_started": self.session_started,
            "current_question_index": self.current_question_index,
            "result_revealed": self.result_revealed,
            "all_questions_completed": self.all_questions_completed,
            "join_url": self.join_url,
        }

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> SessionState:
        return cls(
            session_started=bool(data.get("session_started", False)),
            current_question_index=int(data.get("current_question_index", 0)),
            result_revealed=bool(data.get("result_revealed", False)),
            all_questions_completed=bool(data.get("all_questions_completed", False)),
            join_url=str(data.get("join_url") or ""),
        )


@dataclass(slots=True)
class ParticipantIdentity:
    """Client-local identity; the role is trusted as declared."""

    participant_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass(slots=True)
class NomineeStanding:
    """Live tally row for one nominee."""

    nominee_name: str
    image_ref: str
    score: int = 0
    graduating_votes: int = 0
    first_vote_at: datetime | None = None


@dataclass(slots=True)
class Standing:
    """Ranked nominees with at least one vote and the winner set."""

    ranked: list[NomineeStanding]
    winners: list[NomineeStanding]

    @property
    def is_tie(self) -> bool:
        return len(self.winners) > 1


@dataclass(slots=True)
class CastResult:
    """Outcome of a vote attempt; ``reason`` is set when rejected."""

    accepted: bool
    reason: str | None = None


@dataclass(slots=True)
class SummaryEntry:
    """Superlatives won by a single nominee across the session."""

    image_ref: str
    titles: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SessionSnapshot:
    """What a client needs to render the current screen."""

    state: SessionState
    question_count: int
    question: Superlative | None = None
    standing: Standing | None = None
