from __future__ import annotations

from dataclasses import dataclass, field
import time
import uuid

from core.state import SessionState
from interview_room.errors import InvalidState


@dataclass
class QAPair:
    question: str
    answer: str | None = None

    def to_dict(self) -> dict:
        return {"question": self.question, "answer": self.answer}


@dataclass
class Session:
    summary: str
    history: list[QAPair]
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    application_id: str | None = None
    state: SessionState = SessionState.AWAITING_ANSWER
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)

    def __post_init__(self):
        if not self.history:
            raise ValueError("a session needs at least one question")

    @property
    def open_pair(self) -> QAPair | None:
        last = self.history[-1]
        return last if last.answer is None else None

    @property
    def current_question(self) -> str:
        return self.history[-1].question

    def begin_answer(self, answer: str) -> QAPair:
        """Bind ``answer`` to the open pair and move to GENERATING."""
        if self.state == SessionState.TERMINATED:
            raise InvalidState("Interview has already ended")
        pair = self.open_pair
        if self.state != SessionState.AWAITING_ANSWER or pair is None:
            raise InvalidState("An answer for this question is already being processed")
        pair.answer = answer
        self.state = SessionState.GENERATING
        self.updated_at = time.time()
        return pair

    def reserve(self) -> None:
        # claims the open pair before the answer text is known (audio answers)
        if self.state == SessionState.TERMINATED:
            raise InvalidState("Interview has already ended")
        if self.state != SessionState.AWAITING_ANSWER or self.open_pair is None:
            raise InvalidState("An answer for this question is already being processed")
        self.state = SessionState.GENERATING
        self.updated_at = time.time()

    def bind_reserved(self, answer: str) -> QAPair:
        pair = self.history[-1]
        pair.answer = answer
        self.updated_at = time.time()
        return pair

    def rollback(self) -> None:
        self.history[-1].answer = None
        self.state = SessionState.AWAITING_ANSWER
        self.updated_at = time.time()

    def advance(self, question: str) -> None:
        self.history.append(QAPair(question=question))
        self.state = SessionState.AWAITING_ANSWER
        self.updated_at = time.time()

    def terminate(self) -> None:
        self.state = SessionState.TERMINATED
        self.updated_at = time.time()

    def snapshot(self) -> dict:
        return {
            "sessionId": self.session_id,
            "summary": self.summary,
            "state": self.state.value,
            "applicationId": self.application_id,
            "createdAt": self.created_at,
            "history": [pair.to_dict() for pair in self.history],
        }
