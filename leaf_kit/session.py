from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Optional, Union

from .errors import LeafKitError, NoImageError, SessionBusyError
from .runtime import DetectionPipeline, image_identity
from .types import DetectionResult, RawImage

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    READY = "ready"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class DetectionSession:
    """
    One user-facing detection session: the current photo plus at most one in-flight run.

    - `set_image` replaces the current photo and forgets any previous result.
    - `detect` runs the pipeline on the current photo. A second call while one is
      running raises `SessionBusyError`.
    - A result that arrives after the photo was replaced or cleared is dropped and
      `detect` returns None.
    - Errors are recorded in `last_error` and re-raised; the session stays usable.
    """

    def __init__(self, pipeline: DetectionPipeline) -> None:
        self.pipeline = pipeline
        self._lock = threading.Lock()
        self._image: Optional[Union[bytes, RawImage]] = None
        self._image_id: Optional[str] = None
        self._running = False
        self.state = SessionState.IDLE
        self.result: Optional[DetectionResult] = None
        self.last_error: Optional[LeafKitError] = None

    @property
    def image_id(self) -> Optional[str]:
        return self._image_id

    @property
    def busy(self) -> bool:
        return self._running

    def set_image(self, image: Union[bytes, bytearray, RawImage], image_id: Optional[str] = None) -> str:
        if not isinstance(image, RawImage):
            image = bytes(image)
        tag = image_id if image_id is not None else image_identity(image)
        with self._lock:
            self._image = image
            self._image_id = tag
            self.result = None
            self.last_error = None
            if not self._running:
                self.state = SessionState.READY
        logger.debug("Session image set to %s", tag[:12])
        return tag

    def reset(self) -> None:
        with self._lock:
            self._image = None
            self._image_id = None
            self.result = None
            self.last_error = None
            if not self._running:
                self.state = SessionState.IDLE

    def detect(self) -> Optional[DetectionResult]:
        with self._lock:
            if self._running:
                raise SessionBusyError("A detection is already running for this session.")
            if self._image is None or self._image_id is None:
                raise NoImageError("No image has been set for this session.")
            image, tag = self._image, self._image_id
            self._running = True
            self.state = SessionState.RUNNING

        try:
            result = self.pipeline.detect(image, image_id=tag)
        except LeafKitError as exc:
            with self._lock:
                self._running = False
                if self._image_id == tag:
                    self.last_error = exc
                    self.state = SessionState.FAILED
                else:
                    self.state = SessionState.READY if self._image is not None else SessionState.IDLE
            raise
        except BaseException:
            with self._lock:
                self._running = False
                self.state = SessionState.READY if self._image is not None else SessionState.IDLE
            raise

        with self._lock:
            self._running = False
            if self._image_id != tag:
                logger.warning("Discarding stale result for image %s", tag[:12])
                self.state = SessionState.READY if self._image is not None else SessionState.IDLE
                return None
            self.result = result
            self.state = SessionState.DONE
        return result
