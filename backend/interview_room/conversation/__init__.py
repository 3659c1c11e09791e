from interview_room.conversation.engine import ConversationEngine
from interview_room.conversation.prompts import TERMINATION_SENTINEL, is_termination
from interview_room.conversation.repository import SessionRepository
from interview_room.conversation.session import QAPair, Session

__all__ = [
    "ConversationEngine",
    "SessionRepository",
    "Session",
    "QAPair",
    "TERMINATION_SENTINEL",
    "is_termination",
]
