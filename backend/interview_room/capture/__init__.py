from interview_room.capture.api_client import InterviewApiClient
from interview_room.capture.controller import MediaCaptureController
from interview_room.capture.media import AudioClip, MediaDevices, OwnedStream, StreamView
from interview_room.capture.silence import SilenceMonitor, measure_volume
from interview_room.capture.storage import VideoStorage

__all__ = [
    "InterviewApiClient",
    "MediaCaptureController",
    "MediaDevices",
    "OwnedStream",
    "StreamView",
    "AudioClip",
    "SilenceMonitor",
    "measure_volume",
    "VideoStorage",
]
