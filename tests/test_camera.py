import errno
import unittest

from app.schemas.product import ProductRead
from app.services.camera import (
    CAMERA_BUSY_MESSAGE,
    CAMERA_IN_USE_MESSAGE,
    CAMERA_NOT_FOUND_MESSAGE,
    HTTPS_REQUIRED_MESSAGE,
    NO_CAMERA_AVAILABLE_MESSAGE,
    PERMISSION_DENIED_MESSAGE,
    CameraError,
    CameraSession,
    CameraState,
    classify_camera_error,
    is_secure_context,
)
from app.services.scanner_service import Decoder, NoCodeFoundError, ScanChain


class FakeCapture:
    def __init__(self, frames, opened=True):
        self.frames = list(frames)
        self.opened = opened
        self.released = False

    def isOpened(self):
        return self.opened

    def read(self):
        if self.frames:
            frame = self.frames.pop(0)
            return frame is not None, frame
        return True, "frame"

    def release(self):
        self.released = True


class FixedDecoder(Decoder):
    name = "fixed"

    def __init__(self, code):
        self.code = code

    def decode(self, image):
        return self.code


class FakeLibraries:
    def __init__(self, code="QR-1"):
        self._chain = ScanChain([FixedDecoder(code)])
        self.loaded = {"opencv": True}

    @property
    def ready(self):
        return True

    def chain(self):
        return self._chain


def _session(capture, code="QR-1", attempts=3):
    sleeps = []
    session = CameraSession(
        device_index=0,
        libraries=FakeLibraries(code),
        capture_factory=lambda _index: capture,
        sleep=sleeps.append,
        ready_attempts=attempts,
        ready_interval=0.1,
    )
    return session, sleeps


class SecureContextTest(unittest.TestCase):
    def test_https_or_localhost(self):
        self.assertTrue(is_secure_context("https", "shop.example.com"))
        self.assertTrue(is_secure_context("http", "localhost:8000"))
        self.assertTrue(is_secure_context("http", "127.0.0.1"))
        self.assertFalse(is_secure_context("http", "192.168.1.20:8000"))


class ClassifyErrorTest(unittest.TestCase):
    def test_named_errors(self):
        self.assertEqual(classify_camera_error(CameraError("x", "NotAllowedError")), PERMISSION_DENIED_MESSAGE)
        self.assertEqual(classify_camera_error(CameraError("x", "NotFoundError")), CAMERA_NOT_FOUND_MESSAGE)
        self.assertEqual(classify_camera_error(CameraError("x", "NotReadableError")), CAMERA_BUSY_MESSAGE)
        self.assertEqual(classify_camera_error(CameraError(HTTPS_REQUIRED_MESSAGE)), HTTPS_REQUIRED_MESSAGE)
        self.assertEqual(classify_camera_error(CameraError("boom")), "Camera error: boom")


class CameraSessionTest(unittest.TestCase):
    def test_start_waits_for_first_frame(self):
        session, sleeps = _session(FakeCapture([None, None, "frame"]))
        session.start("http", "localhost")
        self.assertEqual(session.state, CameraState.CAMERA_ACTIVE)
        self.assertEqual(sleeps, [0.1, 0.1])

    def test_insecure_origin_refused(self):
        capture = FakeCapture(["frame"])
        session, _sleeps = _session(capture)
        with self.assertRaises(CameraError) as ctx:
            session.start("http", "10.0.0.5")
        self.assertEqual(ctx.exception.message, HTTPS_REQUIRED_MESSAGE)
        self.assertEqual(session.state, CameraState.ERROR)
        self.assertFalse(session.active)

    def test_closed_device(self):
        capture = FakeCapture([], opened=False)
        session, _sleeps = _session(capture)
        with self.assertRaises(CameraError):
            session.start("https", "shop.test")
        self.assertEqual(session.error, "Camera error: {}".format(NO_CAMERA_AVAILABLE_MESSAGE))
        self.assertTrue(capture.released)

    def test_os_errors_are_classified(self):
        def busy(_index):
            raise OSError(errno.EBUSY, "Device or resource busy")

        session = CameraSession(libraries=FakeLibraries(), capture_factory=busy, sleep=lambda _s: None)
        with self.assertRaises(CameraError):
            session.start("https", "shop.test")
        self.assertEqual(session.error, CAMERA_BUSY_MESSAGE)

    def test_never_ready_releases_device(self):
        capture = FakeCapture([None, None, None, None])
        session, sleeps = _session(capture, attempts=3)
        with self.assertRaises(CameraError):
            session.start("https", "shop.test")
        self.assertEqual(len(sleeps), 3)
        self.assertTrue(capture.released)

    def test_capture_and_resolve(self):
        products = [ProductRead.model_validate({"_id": "p1", "name": "Tea", "qrCode": "QR-1"})]
        capture = FakeCapture(["frame"])
        with _session(capture)[0] as session:
            session.start("https", "shop.test")
            result = session.capture()
            self.assertEqual(result.code, "QR-1")
            self.assertEqual(session.resolve(products).id, "p1")
            self.assertEqual(session.state, CameraState.PRODUCT_FOUND)
            self.assertIsNone(session.resolve(products, "QR-2"))
            self.assertEqual(session.state, CameraState.NOT_FOUND)
        self.assertTrue(capture.released)
        self.assertEqual(session.state, CameraState.READY)

    def test_capture_without_code(self):
        session, _sleeps = _session(FakeCapture(["frame"]), code=None)
        session.start("https", "shop.test")
        with self.assertRaises(NoCodeFoundError):
            session.capture()
        self.assertEqual(session.state, CameraState.NOT_FOUND)

    def test_capture_before_start(self):
        session, _sleeps = _session(FakeCapture([]))
        with self.assertRaises(CameraError):
            session.capture()

    def test_record_lookup_sets_outcome(self):
        session, _sleeps = _session(FakeCapture([]))
        product = ProductRead.model_validate({"_id": "p9", "name": "Tea", "qrCode": "QR-9"})
        self.assertIs(session.record_lookup(product), product)
        self.assertEqual(session.state, CameraState.PRODUCT_FOUND)
        self.assertIsNone(session.record_lookup(None))
        self.assertEqual(session.state, CameraState.NOT_FOUND)

    def test_other_owner_cannot_capture_stop_or_restart(self):
        capture = FakeCapture([])
        session, _sleeps = _session(capture)
        session.start("https", "shop.test", owner="token-a")
        for call in (lambda: session.capture(owner="token-b"), lambda: session.stop(owner="token-b")):
            with self.assertRaises(CameraError) as ctx:
                call()
            self.assertEqual(ctx.exception.message, CAMERA_IN_USE_MESSAGE)
        with self.assertRaises(CameraError):
            session.start("https", "shop.test", owner="token-b")
        self.assertTrue(session.active)
        self.assertEqual(session.state, CameraState.CAMERA_ACTIVE)

        self.assertEqual(session.capture(owner="token-a").code, "QR-1")
        session.stop(owner="token-a")
        self.assertFalse(session.active)
        self.assertIsNone(session.owner)
        self.assertTrue(capture.released)

    def test_free_camera_can_be_taken_by_anyone(self):
        session, _sleeps = _session(FakeCapture([]))
        session.start("https", "shop.test", owner="token-a")
        session.stop()
        session.start("https", "shop.test", owner="token-b")
        self.assertEqual(session.owner, "token-b")


if __name__ == "__main__":
    unittest.main()
