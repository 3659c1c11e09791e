from __future__ import annotations

import logging
import time

from core.logger import log_event
from core.state import SessionState
from interview_room.conversation.prompts import (
    DEFAULT_CONTEXT,
    build_first_question_prompt,
    build_next_question_prompt,
    build_summary_prompt,
    is_termination,
    normalize_resume_text,
)
from interview_room.conversation.repository import SessionRepository
from interview_room.conversation.session import QAPair, Session
from interview_room.errors import InterviewError, InvalidInput, InvalidState, NotFound, UpstreamFailure
from interview_room.gateways.base import GenerationGateway, TranscriptionGateway
from interview_room.system_metrics import increment_metric, observe_generation_latency_ms

logger = logging.getLogger("interview_room.conversation")


class ConversationEngine:

    def __init__(
        self,
        repository: SessionRepository,
        generator: GenerationGateway,
        transcriber: TranscriptionGateway,
    ):
        self.repository = repository
        self.generator = generator
        self.transcriber = transcriber

    def _require(self, session_id: str) -> Session:
        session = self.repository.get(session_id)
        if session is None:
            raise NotFound("Session not found")
        return session

    async def _generate(self, prompt: str) -> str:
        started = time.monotonic()
        try:
            text = await self.generator.generate_text(prompt, DEFAULT_CONTEXT)
        except InterviewError:
            increment_metric("upstream_failures")
            raise
        except Exception as exc:
            increment_metric("upstream_failures")
            raise UpstreamFailure(f"generation failed: {exc}") from exc
        finally:
            observe_generation_latency_ms((time.monotonic() - started) * 1000.0)

        text = str(text or "").strip()
        if not text:
            increment_metric("upstream_failures")
            raise UpstreamFailure("generation returned an empty response")
        return text

    # ---------- session creation ----------

    async def create_session(self, resume_text: str, application_id: str | None = None) -> dict:
        resume = normalize_resume_text(resume_text)
        if not resume:
            raise InvalidInput("Resume text is empty or could not be extracted")

        summary = await self._generate(build_summary_prompt(resume))
        question = await self._generate(build_first_question_prompt(summary))

        session = Session(
            summary=summary,
            history=[QAPair(question=question)],
            application_id=str(application_id) if application_id else None,
        )
        self.repository.add(session)
        increment_metric("sessions_created")
        log_event(
            "conversation",
            "session_created",
            session.session_id,
            resume_chars=len(resume),
            application_id=session.application_id,
        )

        return {
            "sessionId": session.session_id,
            "summary": summary,
            "question": question,
        }

    # ---------- answers ----------

    async def _advance(self, session: Session, answer: str) -> dict:
        prompt = build_next_question_prompt(session.summary, session.history, answer)
        question = await self._generate(prompt)

        done = is_termination(question)
        if done:
            self.repository.mark_terminated(session.session_id)
            increment_metric("sessions_terminated")
        else:
            session.advance(question)

        log_event(
            "conversation",
            "turn_completed",
            session.session_id,
            turn=len(session.history),
            done=done,
            state=session.state.value,
        )
        return {"question": question, "done": done}

    async def submit_answer(self, session_id: str, answer_text: str) -> dict:
        if not str(session_id or "").strip():
            raise InvalidInput("sessionId is required")
        if not str(answer_text or "").strip():
            raise InvalidInput("answer is required")

        session = self._require(session_id)
        try:
            session.begin_answer(answer_text)
        except InvalidState:
            increment_metric("answers_rejected_conflict")
            raise

        try:
            result = await self._advance(session, answer_text)
        except BaseException:
            session.rollback()
            logger.warning("submit_answer rolled back | session=%s", session.session_id)
            raise

        increment_metric("answers_submitted")
        return result

    async def submit_audio_answer(self, session_id: str, audio_bytes: bytes, filename: str) -> dict:
        if not str(session_id or "").strip():
            raise InvalidInput("sessionId is required")
        if not audio_bytes:
            raise InvalidInput("audio file is required")

        session = self._require(session_id)
        try:
            session.reserve()
        except InvalidState:
            increment_metric("answers_rejected_conflict")
            raise

        try:
            try:
                transcript = await self.transcriber.transcribe_audio(audio_bytes, filename or "audio.webm")
            except InterviewError:
                increment_metric("upstream_failures")
                raise
            except Exception as exc:
                increment_metric("upstream_failures")
                raise UpstreamFailure(f"transcription failed: {exc}") from exc

            transcript = str(transcript or "")
            session.bind_reserved(transcript)
            result = await self._advance(session, transcript)
        except BaseException:
            session.rollback()
            logger.warning("submit_audio_answer rolled back | session=%s", session.session_id)
            raise

        increment_metric("audio_answers_submitted")
        result["transcript"] = transcript
        return result

    # ---------- reads ----------

    def repeat_last(self, session_id: str) -> dict:
        session = self._require(session_id)
        if session.state == SessionState.TERMINATED:
            raise InvalidState("Interview has already ended")
        self.repository.touch(session.session_id)
        return {"question": session.current_question}

    def history(self, session_id: str) -> dict:
        return self._require(session_id).snapshot()
