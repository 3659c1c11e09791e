import argparse
import asyncio
import mimetypes
from pathlib import Path
import sys
import threading

from core.config import INTERVIEW_API_BASE, SILENCE_THRESHOLD_MS, TTS_VOICE
from core.logger import configure_logging
from core.state import CaptureState
from interview_room.capture.api_client import InterviewApiClient
from interview_room.capture.controller import MediaCaptureController
from interview_room.capture.media import MediaDevices
from interview_room.capture.playback import AudioPlayer, LocalSpeechSynthesizer
from interview_room.capture.storage import VideoStorage
from interview_room.errors import InterviewError

HELP = "[Enter] stop recording   [r] repeat question   [q] end interview"


def print_event(kind: str, payload: dict) -> None:
    if kind == "question":
        print(f"\nQ{payload['number']}: {payload['text']}")
    elif kind == "transcript":
        print(f"You: {payload['text']}")
    elif kind == "state" and payload.get("phase") == "recording":
        print(f"Recording... {HELP}")
    elif kind == "retry":
        print(f"! {payload['detail']}")
    elif kind == "error":
        print(f"Error: {payload['detail']}")
    elif kind == "completed":
        video = payload.get("video") or "not saved"
        print(f"\nInterview finished ({payload['reason']}). Video: {video}")


def start_stdin_reader(queue: asyncio.Queue) -> None:
    # daemon thread so a blocked readline never holds up interpreter exit
    loop = asyncio.get_running_loop()

    def pump() -> None:
        while True:
            line = sys.stdin.readline()
            loop.call_soon_threadsafe(queue.put_nowait, line)
            if line == "":
                return

    threading.Thread(target=pump, name="stdin-reader", daemon=True).start()


async def read_commands(controller: MediaCaptureController, queue: asyncio.Queue) -> None:
    while controller.state is CaptureState.ACTIVE:
        line = await queue.get()
        if controller.state is not CaptureState.ACTIVE:
            break
        command = line.strip().lower()
        try:
            if command == "q" or line == "":
                await controller.end_interview(reason="user")
            elif command == "r":
                await controller.repeat_question()
            elif controller.is_recording:
                await controller.stop_recording()
        except InterviewError as exc:
            print(f"({exc.message})")


async def wait_until_completed(controller: MediaCaptureController) -> None:
    while controller.state is not CaptureState.COMPLETED:
        await asyncio.sleep(0.2)


async def run(args: argparse.Namespace) -> int:
    resume_path = Path(args.resume)
    content_type = mimetypes.guess_type(resume_path.name)[0] or "application/pdf"

    async with InterviewApiClient(base_url=args.api) as api:
        controller = MediaCaptureController(
            api,
            MediaDevices(camera_index=args.camera),
            AudioPlayer(),
            LocalSpeechSynthesizer(),
            VideoStorage(args.video_dir) if args.video_dir else VideoStorage(),
            voice=args.voice,
            silence_threshold_ms=args.silence_ms,
            on_event=print_event,
        )
        async with controller:
            try:
                created = await controller.start(
                    resume_path.read_bytes(),
                    resume_path.name,
                    content_type=content_type,
                    application_id=args.application_id,
                )
            except InterviewError as exc:
                print(f"Could not start the interview: {exc.message}")
                return 1

            print(f"Summary: {created.get('summary', '')}")
            queue: asyncio.Queue = asyncio.Queue()
            start_stdin_reader(queue)
            commands = asyncio.create_task(read_commands(controller, queue))
            await wait_until_completed(controller)
            commands.cancel()

    return 0 if controller.last_error is None else 1


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Run a recorded mock interview against the interview API")
    parser.add_argument("--resume", required=True, help="PDF or DOCX resume")
    parser.add_argument("--api", default=INTERVIEW_API_BASE)
    parser.add_argument("--application-id", default=None)
    parser.add_argument("--voice", default=TTS_VOICE)
    parser.add_argument("--camera", type=int, default=0)
    parser.add_argument("--silence-ms", type=int, default=SILENCE_THRESHOLD_MS)
    parser.add_argument("--video-dir", default=None)
    args = parser.parse_args(argv)

    configure_logging()
    return asyncio.run(run(args))


if __name__ == "__main__":
    raise SystemExit(main())
