from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable

from core.config import SILENCE_THRESHOLD_MS, SILENCE_VOLUME_THRESHOLD, TTS_VOICE
from core.logger import log_event
from core.state import CaptureState, TurnPhase
from interview_room.capture.silence import SilenceMonitor
from interview_room.errors import (
    InterviewError,
    InvalidState,
    RecordingRetry,
    UpstreamFailure,
)

logger = logging.getLogger("interview_room.capture.controller")

SKIP_ANSWER = "No answer provided (skipped due to silence)"
SKIP_LABEL = "Skipped (no answer)"
NO_TRANSCRIPT_LABEL = "(transcription unavailable)"
COMPLETED_MESSAGE = "Interview completed! Your video has been saved."

EventCallback = Callable[[str, dict], Any]


class MediaCaptureController:
    """
    Client-side driver of one interview attempt.

    SETUP -> ACTIVE -> COMPLETED at the top level; while ACTIVE exactly one
    turn phase is current: PLAYING_QUESTION -> RECORDING -> TRANSCRIBING.

    The controller is the only owner of the camera and microphone streams,
    the continuous video recorder, the per-turn recorder and the
    SilenceMonitor. ``end_interview()`` releases all of them exactly once no
    matter how many times, or from where, it is called.
    """

    def __init__(
        self,
        api,
        devices,
        player,
        fallback_voice,
        storage,
        *,
        voice: str = TTS_VOICE,
        silence_threshold_ms: int = SILENCE_THRESHOLD_MS,
        volume_threshold: float = SILENCE_VOLUME_THRESHOLD,
        settle_delay_sec: float = 0.5,
        monitor_factory=SilenceMonitor,
        on_event: EventCallback | None = None,
    ):
        self.api = api
        self.devices = devices
        self.player = player
        self.fallback_voice = fallback_voice
        self.storage = storage
        self.voice = voice
        self.silence_threshold_ms = silence_threshold_ms
        self.volume_threshold = volume_threshold
        self.settle_delay_sec = settle_delay_sec
        self.monitor_factory = monitor_factory
        self.on_event = on_event

        self.state = CaptureState.SETUP
        self.phase = TurnPhase.IDLE
        self.session_id: str | None = None
        self.summary = ""
        self.current_question = ""
        self.question_number = 0
        self.messages: list[dict] = []
        self.video_artifact: Path | None = None
        self.last_error: InterviewError | None = None

        self._camera = None
        self._microphone = None
        self._video_recorder = None
        self._turn_recorder = None
        self._monitor: SilenceMonitor | None = None
        self._tasks: set[asyncio.Task] = set()
        self._retry_used = False
        self._end_task: asyncio.Task | None = None

    # ---------- helpers ----------

    async def __aenter__(self) -> "MediaCaptureController":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.end_interview(reason="teardown")

    def _emit(self, kind: str, **payload) -> None:
        if self.on_event is None:
            return
        try:
            self.on_event(kind, payload)
        except Exception:
            logger.exception("event callback failed | kind=%s", kind)

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("capture task failed | session=%s err=%r", self.session_id, exc)

    def _is_stale(self) -> bool:
        return self.state is not CaptureState.ACTIVE or self._end_task is not None

    def _set_phase(self, phase: TurnPhase) -> None:
        self.phase = phase
        self._emit("state", state=self.state.value, phase=phase.value)

    @property
    def is_recording(self) -> bool:
        return self.phase is TurnPhase.RECORDING and self._turn_recorder is not None

    def silence_countdown(self) -> int | None:
        """Whole seconds left before auto-skip; None outside RECORDING."""
        if not self.is_recording or self._monitor is None:
            return None
        return self._monitor.remaining_seconds()

    # ---------- setup ----------

    async def start(
        self,
        resume_bytes: bytes,
        filename: str,
        content_type: str = "application/pdf",
        application_id: str | None = None,
    ) -> dict:
        if self.state is not CaptureState.SETUP or self._end_task is not None:
            raise InvalidState("Interview already started")

        created = await self.api.create_session(
            resume_bytes,
            filename,
            content_type=content_type,
            application_id=application_id,
        )
        if self._end_task is not None:
            # torn down while the session was being created
            raise InvalidState("Interview was ended during setup")

        self.session_id = str(created["sessionId"])
        self.summary = str(created.get("summary") or "")
        question = str(created["question"])
        self.question_number = 1
        self.messages = [{"from": "bot", "text": question}]

        try:
            self._activate_media()
        except Exception as exc:
            # stays in SETUP; granting permission and calling start() again retries
            await self._abort_media()
            self.session_id = None
            if isinstance(exc, InterviewError):
                self.last_error = exc
                self._emit("error", error=exc.code, detail=exc.message)
            raise

        self.state = CaptureState.ACTIVE
        log_event("capture", "interview_started", self.session_id, summary=self.summary)
        self._spawn(self._play_question(question))
        return created

    def _activate_media(self) -> None:
        self._camera = self.devices.open_camera()
        recording_path = self.storage.recording_path(self.session_id)
        self._video_recorder = self.devices.video_recorder(self._camera.view(), recording_path)
        self._video_recorder.start()

        self._microphone = self.devices.open_microphone()
        self._monitor = self.monitor_factory(
            self.devices.analyser(self._microphone.view()),
            self._handle_silence,
            self._handle_speech,
            silence_threshold_ms=self.silence_threshold_ms,
            volume_threshold=self.volume_threshold,
        )
        self._monitor.start()
        logger.info("Media activated | session=%s", self.session_id)

    async def _abort_media(self) -> None:
        if self._monitor is not None:
            self._monitor.stop()
            self._monitor = None
        video_recorder, self._video_recorder = self._video_recorder, None
        if video_recorder is not None:
            partial = await video_recorder.stop()
            if partial is not None:
                Path(partial).unlink(missing_ok=True)
        for stream in (self._microphone, self._camera):
            if stream is not None:
                stream.release()
        self._microphone = None
        self._camera = None

    # ---------- PLAYING_QUESTION ----------

    async def _play_question(self, question: str) -> None:
        if self._is_stale():
            return

        self.current_question = question
        self._set_phase(TurnPhase.PLAYING_QUESTION)
        self._emit("question", number=self.question_number, text=question)

        try:
            audio = await self.api.synthesize_speech(question, self.voice)
            if self._is_stale():
                return
            await self.player.play(audio)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("remote speech failed, using on-device voice | err=%s", exc)
            if self._is_stale():
                return
            try:
                await self.fallback_voice.speak(question)
            except asyncio.CancelledError:
                raise
            except Exception as fallback_exc:
                logger.warning("on-device speech failed | err=%s", fallback_exc)

        if self._is_stale():
            return
        await asyncio.sleep(self.settle_delay_sec)
        if not self._is_stale() and self.phase is TurnPhase.PLAYING_QUESTION:
            self._start_recording()

    # ---------- RECORDING ----------

    def _start_recording(self) -> bool:
        if self._is_stale() or self._turn_recorder is not None or self._microphone is None:
            return False

        recorder = self.devices.audio_recorder(self._microphone.view())
        recorder.start()
        self._turn_recorder = recorder
        if self._monitor is not None:
            self._monitor.reset()
        self._set_phase(TurnPhase.RECORDING)
        logger.info("Voice recording started | session=%s turn=%s", self.session_id, self.question_number)
        return True

    def _take_recorder(self):
        recorder, self._turn_recorder = self._turn_recorder, None
        return recorder

    async def stop_recording(self) -> None:
        """Manual stop: the clip is uploaded in the background as this turn's answer."""
        if self._is_stale() or not self.is_recording:
            raise InvalidState("Not recording")

        recorder = self._take_recorder()
        self._set_phase(TurnPhase.TRANSCRIBING)
        self._spawn(self._finish_recording(recorder))

    async def _finish_recording(self, recorder) -> None:
        clip = await recorder.stop()
        if self._is_stale():
            return
        await self._submit_audio(clip)

    def _handle_silence(self, silence_duration_ms: float) -> None:
        if self._is_stale() or not self.is_recording:
            return

        logger.info("Silence detected - auto-skipping | duration_ms=%.0f", silence_duration_ms)
        recorder = self._take_recorder()
        self._set_phase(TurnPhase.TRANSCRIBING)
        self._spawn(self._auto_skip(recorder))

    def _handle_speech(self) -> None:
        self._emit("countdown", seconds=self.silence_countdown())

    async def _auto_skip(self, recorder) -> None:
        await recorder.discard()
        if self._is_stale():
            return
        await self._submit_text(SKIP_ANSWER, label=SKIP_LABEL)

    # ---------- TRANSCRIBING ----------

    async def _submit_audio(self, clip) -> None:
        try:
            result = await self.api.submit_audio_answer(
                self.session_id,
                clip.data,
                filename=clip.filename,
                content_type=clip.content_type,
            )
        except InterviewError as exc:
            await self._handle_turn_failure(exc)
            return

        transcript = str(result.get("transcript") or "").strip() or NO_TRANSCRIPT_LABEL
        await self._apply_response(result, transcript)

    async def _submit_text(self, answer: str, label: str) -> None:
        try:
            result = await self.api.submit_answer(self.session_id, answer)
        except InterviewError as exc:
            await self._handle_turn_failure(exc)
            return

        await self._apply_response(result, label)

    async def _handle_turn_failure(self, exc: InterviewError) -> None:
        if self._is_stale():
            logger.info("discarding failure after interview ended | err=%s", exc)
            return

        if isinstance(exc, (UpstreamFailure, RecordingRetry)) and not self._retry_used:
            self._retry_used = True
            retry = RecordingRetry(f"Failed to process your answer, please try again ({exc.message})")
            self.last_error = retry
            log_event("capture", "turn_retry", self.session_id, turn=self.question_number, error=exc.code)
            self._emit("retry", detail=retry.message)
            self._start_recording()
            return

        self.last_error = exc
        log_event("capture", "turn_failed", self.session_id, turn=self.question_number, error=exc.code)
        self._emit("error", error=exc.code, detail=exc.message)
        await self.end_interview(reason="error")

    async def _apply_response(self, result: dict, user_text: str) -> None:
        if self._is_stale():
            logger.info("discarding response that arrived after the interview ended | session=%s", self.session_id)
            return

        self._retry_used = False
        next_question = str(result.get("question") or "")
        done = bool(result.get("done", False))

        self.messages.append({"from": "user", "text": user_text})
        self.messages.append({"from": "bot", "text": next_question})
        self._emit("transcript", text=user_text)

        if done:
            await self.end_interview(reason="completed")
            return

        self.question_number += 1
        self._spawn(self._play_question(next_question))

    # ---------- explicit actions ----------

    async def repeat_question(self) -> str:
        if self._is_stale() or not self.is_recording:
            raise InvalidState("The question can only be repeated while waiting for an answer")

        result = await self.api.repeat_last(self.session_id)
        if self._is_stale() or not self.is_recording:
            return self.current_question

        recorder = self._take_recorder()
        await recorder.discard()
        question = str(result.get("question") or self.current_question)
        self._spawn(self._play_question(question))
        return question

    async def end_interview(self, reason: str = "user") -> Path | None:
        """Idempotent: every caller awaits the same single shutdown."""
        if self._end_task is None:
            caller = asyncio.current_task()
            self._end_task = asyncio.get_running_loop().create_task(self._shutdown(reason, caller))
        return await asyncio.shield(self._end_task)

    async def _shutdown(self, reason: str, caller: asyncio.Task | None) -> Path | None:
        logger.info("Ending interview | session=%s reason=%s", self.session_id, reason)

        for speaker in (self.player, self.fallback_voice):
            try:
                speaker.cancel()
            except Exception as exc:
                logger.warning("speech cancel failed | err=%s", exc)

        pending = [task for task in self._tasks if task is not caller and not task.done()]
        for task in pending:
            task.cancel()

        recorder = self._take_recorder()
        if recorder is not None:
            try:
                await recorder.discard()
            except Exception as exc:
                logger.warning("turn recorder stop failed | err=%s", exc)

        if self._monitor is not None:
            self._monitor.stop()
            self._monitor = None

        video_recorder, self._video_recorder = self._video_recorder, None
        if video_recorder is not None:
            try:
                recorded = await video_recorder.stop()
                if recorded is None:
                    logger.warning("No video frames were captured | session=%s", self.session_id)
                else:
                    self.video_artifact = self.storage.persist(recorded, self.session_id)
            except Exception as exc:
                logger.error("Failed to save video | session=%s err=%s", self.session_id, exc)

        for stream in (self._microphone, self._camera):
            if stream is not None:
                stream.release()
        self._microphone = None
        self._camera = None

        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        was_active = self.state is CaptureState.ACTIVE
        self.state = CaptureState.COMPLETED
        self.phase = TurnPhase.IDLE
        if was_active:
            self.messages.append({"from": "bot", "text": COMPLETED_MESSAGE})
        log_event(
            "capture",
            "interview_completed",
            self.session_id or "",
            reason=reason,
            questions=self.question_number,
            video=str(self.video_artifact or ""),
        )
        self._emit("completed", reason=reason, video=str(self.video_artifact or ""))
        return self.video_artifact
