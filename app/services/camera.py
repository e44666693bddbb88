from __future__ import annotations

import errno
import importlib
import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

from app.config import get_settings
from app.services.scanner_service import (
    DecodeResult,
    NoCodeFoundError,
    ScannerLibraries,
    find_product_by_code,
    get_scanner_libraries,
)

logger = logging.getLogger(__name__)

HTTPS_REQUIRED_MESSAGE = "HTTPS required for camera access on mobile devices"
NO_CAMERA_AVAILABLE_MESSAGE = "No camera available on this device"
PERMISSION_DENIED_MESSAGE = "Camera permission denied. Please allow camera access."
CAMERA_NOT_FOUND_MESSAGE = "No camera found on this device"
CAMERA_BUSY_MESSAGE = "Camera is being used by another app"
CAMERA_NOT_READY_MESSAGE = "Camera not ready for capture"
CAMERA_IN_USE_MESSAGE = "Camera is in use by another signed-in user"

_LOCAL_HOSTS = ("localhost", "127.0.0.1")


class CameraState(str, Enum):
    IDLE = "idle"
    LIBRARIES_LOADING = "libraries_loading"
    READY = "ready"
    CAMERA_STARTING = "camera_starting"
    CAMERA_ACTIVE = "camera_active"
    CAPTURING = "capturing"
    PRODUCT_FOUND = "product_found"
    NOT_FOUND = "not_found"
    ERROR = "error"


class CameraError(Exception):
    def __init__(self, message: str, name: str = "Error"):
        self.name = name
        self.message = message
        super().__init__(message)


def is_secure_context(scheme: str, host: str) -> bool:
    host = (host or "").split(":")[0].strip("[]").lower()
    return (scheme or "").lower() == "https" or host in _LOCAL_HOSTS


def classify_camera_error(exc: BaseException) -> str:
    name = getattr(exc, "name", type(exc).__name__)
    message = getattr(exc, "message", None) or str(exc)
    if name == "NotAllowedError" or isinstance(exc, PermissionError):
        return PERMISSION_DENIED_MESSAGE
    if name == "NotFoundError":
        return CAMERA_NOT_FOUND_MESSAGE
    if name == "NotReadableError":
        return CAMERA_BUSY_MESSAGE
    if "HTTPS" in message:
        return HTTPS_REQUIRED_MESSAGE
    return "Camera error: {}".format(message)


def _os_error_name(exc: OSError) -> str:
    if isinstance(exc, PermissionError):
        return "NotAllowedError"
    if exc.errno == errno.EBUSY:
        return "NotReadableError"
    if exc.errno in (errno.ENOENT, errno.ENODEV, errno.ENXIO):
        return "NotFoundError"
    return "Error"


def _default_capture_factory(device_index: int):
    cv2 = importlib.import_module("cv2")
    return cv2.VideoCapture(device_index)


class CameraSession:
    """Camera attached to the console host, driven through one scan cycle.

    The host has one device, so one session serves the whole console. While
    the camera is open it belongs to the owner that started it; capture and
    stop calls naming a different owner are refused. Calls without an owner
    (shutdown, tests) are not checked.

    Use as a context manager so the device is released when the caller is
    done, including on errors.
    """

    def __init__(
        self,
        *,
        device_index: Optional[int] = None,
        libraries: Optional[ScannerLibraries] = None,
        capture_factory: Optional[Callable[[int], object]] = None,
        sleep: Callable[[float], None] = time.sleep,
        ready_attempts: Optional[int] = None,
        ready_interval: Optional[float] = None,
    ):
        settings = get_settings()
        self.device_index = settings.CAMERA_DEVICE_INDEX if device_index is None else device_index
        self.libraries = libraries or get_scanner_libraries()
        self._capture_factory = capture_factory or _default_capture_factory
        self._sleep = sleep
        self.ready_attempts = ready_attempts or settings.CAMERA_READY_ATTEMPTS
        self.ready_interval = (
            ready_interval if ready_interval is not None else settings.CAMERA_READY_INTERVAL_MS / 1000.0
        )
        self.state = CameraState.IDLE
        self.error: Optional[str] = None
        self.last_result: Optional[DecodeResult] = None
        self.owner: Optional[str] = None
        self._capture = None
        self._lock = threading.Lock()

    def __enter__(self) -> "CameraSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    @property
    def active(self) -> bool:
        return self._capture is not None

    def load_libraries(self) -> None:
        if self.libraries.ready:
            self.state = CameraState.READY
            return
        self.state = CameraState.LIBRARIES_LOADING
        self.libraries.chain()
        self.state = CameraState.READY

    def _check_owner(self, owner: Optional[str]) -> None:
        if owner is None or self._capture is None or self.owner is None:
            return
        if owner != self.owner:
            raise CameraError(CAMERA_IN_USE_MESSAGE, "InUseError")

    def _fail(self, exc: BaseException) -> CameraError:
        self.error = classify_camera_error(exc)
        self.state = CameraState.ERROR
        logger.warning("Camera error: %s", exc)
        self._release()
        return CameraError(self.error, getattr(exc, "name", type(exc).__name__))

    def start(self, scheme: str, host: str, owner: Optional[str] = None) -> None:
        with self._lock:
            self._check_owner(owner)
            self._release()
            self.load_libraries()
            self.state = CameraState.CAMERA_STARTING
            self.error = None
            try:
                secure = is_secure_context(scheme, host)
                logger.debug("Security check: %s on %s = %s", scheme, host, secure)
                if not secure:
                    raise CameraError(HTTPS_REQUIRED_MESSAGE)

                try:
                    capture = self._capture_factory(self.device_index)
                except OSError as exc:
                    raise CameraError(str(exc), _os_error_name(exc)) from exc
                if capture is None or not capture.isOpened():
                    if capture is not None:
                        capture.release()
                    raise CameraError(NO_CAMERA_AVAILABLE_MESSAGE)
                self._capture = capture

                for attempt in range(1, self.ready_attempts + 1):
                    ok, _frame = self._capture.read()
                    if ok:
                        break
                    logger.debug("Waiting for camera... (attempt %d/%d)", attempt, self.ready_attempts)
                    self._sleep(self.ready_interval)
                else:
                    raise CameraError("Camera did not deliver a frame after waiting")
            except CameraError as exc:
                raise self._fail(exc) from exc

            self.owner = owner
            self.state = CameraState.CAMERA_ACTIVE
            logger.info("Camera %s ready", self.device_index)

    def capture(self, owner: Optional[str] = None) -> DecodeResult:
        with self._lock:
            self._check_owner(owner)
            if self._capture is None:
                raise CameraError(CAMERA_NOT_READY_MESSAGE)
            self.state = CameraState.CAPTURING
            ok, frame = self._capture.read()
            if not ok or frame is None:
                self.state = CameraState.CAMERA_ACTIVE
                raise CameraError(CAMERA_NOT_READY_MESSAGE)
            logger.debug("Captured frame %s", getattr(frame, "shape", None))
            try:
                self.last_result = self.libraries.chain().decode(frame)
            except NoCodeFoundError:
                self.state = CameraState.NOT_FOUND
                raise
            return self.last_result

    def resolve(self, products, code: Optional[str] = None):
        code = code if code is not None else (self.last_result.code if self.last_result else None)
        return self.record_lookup(find_product_by_code(products, code))

    def record_lookup(self, product):
        """Settle the scan cycle on the outcome of the product lookup."""
        self.state = CameraState.PRODUCT_FOUND if product is not None else CameraState.NOT_FOUND
        return product

    def _release(self) -> None:
        if self._capture is not None:
            try:
                self._capture.release()
            finally:
                self._capture = None
                self.owner = None

    def stop(self, owner: Optional[str] = None) -> None:
        if self._capture is None:
            return
        self._check_owner(owner)
        logger.debug("Stopping camera %s", self.device_index)
        self._release()
        if self.state != CameraState.ERROR:
            self.state = CameraState.READY if self.libraries.ready else CameraState.IDLE


__all__ = [
    "CAMERA_BUSY_MESSAGE",
    "CAMERA_IN_USE_MESSAGE",
    "CAMERA_NOT_FOUND_MESSAGE",
    "CameraError",
    "CameraSession",
    "CameraState",
    "HTTPS_REQUIRED_MESSAGE",
    "NO_CAMERA_AVAILABLE_MESSAGE",
    "PERMISSION_DENIED_MESSAGE",
    "classify_camera_error",
    "is_secure_context",
]
