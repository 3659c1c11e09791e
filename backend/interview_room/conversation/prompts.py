import re

from core.config import MAX_RESUME_CHARS
from interview_room.conversation.session import QAPair

TERMINATION_SENTINEL = "End of interview."

DEFAULT_CONTEXT = (
    "You are a concise technical interviewer. "
    "Ask one question at a time, tailored to the candidate resume."
)

NO_ANSWER_PLACEHOLDER = "no answer provided"


def is_termination(text: str) -> bool:
    return str(text or "").strip().lower() == TERMINATION_SENTINEL.lower()


def normalize_resume_text(text: str, limit: int = MAX_RESUME_CHARS) -> str:
    if not text:
        return ""
    collapsed = re.sub(r"\s+", " ", text).strip()
    return collapsed[:limit]


def build_summary_prompt(resume_text: str) -> str:
    return (
        "Summarize this resume for an interviewer in 6 short bullet points. "
        f"Keep concise, avoid fluff. Resume: {resume_text}"
    )


def build_first_question_prompt(summary: str) -> str:
    return f"""Resume summary:
{summary}

Ask the first interview question. Keep it role-appropriate, <=35 words."""


def serialize_history(history: list[QAPair]) -> str:
    lines = []
    for idx, pair in enumerate(history, start=1):
        lines.append(f"Q{idx}: {pair.question}")
        lines.append(f"A{idx}: {pair.answer or NO_ANSWER_PLACEHOLDER}")
    return "\n".join(lines)


def build_next_question_prompt(summary: str, history: list[QAPair], answer: str) -> str:
    return f"""Resume summary:
{summary}

Prior Q&A:
{serialize_history(history)}

New answer: {answer}

Ask exactly one follow-up question (<=40 words). If the conversation should end, reply with "{TERMINATION_SENTINEL}" only."""
