"""OpenCV camera adapter."""

import asyncio
import logging
from dataclasses import dataclass
from uuid import uuid4

import cv2

from castbooth.domain.capture import StreamHandle
from castbooth.errors import DeviceError
from castbooth.services.sessions import CaptureDevice

_logger = logging.getLogger(__name__)


@dataclass
class OpenCvCaptureDevice(CaptureDevice):
    """Opens a local camera with cv2.VideoCapture.

    Audio is recorded on the handle as requested but not captured here.
    """

    device_index: int = 0

    async def acquire(self, video_enabled: bool, audio_enabled: bool) -> StreamHandle:
        """Open the camera in a worker thread and verify it yields frames."""
        capture = await asyncio.to_thread(self._open) if video_enabled else None
        handle = StreamHandle(
            id=str(uuid4()),
            video_enabled=video_enabled,
            audio_enabled=audio_enabled,
            source=capture,
        )
        _logger.info("Opened camera %s as stream %s", self.device_index, handle.id)
        return handle

    def release(self, handle: StreamHandle) -> None:
        """Release the camera behind a handle."""
        capture = handle.source
        if capture is not None:
            capture.release()

    def _open(self):  # type: ignore[no-untyped-def]
        try:
            capture = cv2.VideoCapture(self.device_index)
        except cv2.error as exc:
            raise DeviceError(str(exc)) from exc
        if not capture.isOpened():
            capture.release()
            raise DeviceError(f"Camera {self.device_index} could not be opened")
        ok, _frame = capture.read()
        if not ok:
            capture.release()
            raise DeviceError(f"Camera {self.device_index} returned no frames")
        return capture
