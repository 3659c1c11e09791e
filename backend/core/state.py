# backend/core/state.py

from enum import Enum


class SessionState(str, Enum):
    AWAITING_ANSWER = "awaiting_answer"
    GENERATING = "generating"
    TERMINATED = "terminated"


class CaptureState(str, Enum):
    SETUP = "setup"
    ACTIVE = "active"
    COMPLETED = "completed"


class TurnPhase(str, Enum):
    IDLE = "idle"
    PLAYING_QUESTION = "playing_question"
    RECORDING = "recording"
    TRANSCRIBING = "transcribing"
