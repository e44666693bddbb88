"""QR/barcode decoding for uploaded images and camera frames.

Decoders run in a fixed order and the first one that returns a code wins:
OpenCV's QR detector, then OpenCV's barcode detector when the installed
build ships it, then zxing-cpp. The libraries are imported on first use.
"""

from __future__ import annotations

import importlib
import io
import logging
import threading
from dataclasses import dataclass, field
from typing import Iterable, Optional, Sequence

logger = logging.getLogger(__name__)

INVALID_IMAGE_MESSAGE = "Please select an image file (JPG, PNG, etc.)"
NO_CODE_MESSAGE = "No QR code or barcode found in image. Try a clearer image."

NATIVE_BARCODE_FORMATS = ("code_128", "code_39", "code_93", "ean_13", "ean_8", "upc_a", "upc_e")


class ScannerError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class InvalidImageError(ScannerError):
    def __init__(self, message: str = INVALID_IMAGE_MESSAGE):
        super().__init__(message)


class NoCodeFoundError(ScannerError):
    def __init__(self, message: str = NO_CODE_MESSAGE, attempts=None):
        super().__init__(message)
        self.attempts = attempts or []


def _normalize_format(value) -> str:
    text = str(value or "").strip().lower()
    for prefix in ("barcodeformat.", "format."):
        if text.startswith(prefix):
            text = text[len(prefix):]
    return text.replace("-", "_").replace(" ", "_")


def _first_text(values) -> Optional[str]:
    if isinstance(values, str):
        return values.strip() or None
    for value in values or ():
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class Decoder:
    name = "decoder"

    def available(self) -> bool:
        return True

    def decode(self, image) -> Optional[str]:
        raise NotImplementedError


class QrDecoder(Decoder):
    name = "qr"

    def __init__(self, cv2_module):
        self._cv2 = cv2_module
        self._detector = cv2_module.QRCodeDetector()

    def decode(self, image) -> Optional[str]:
        text, _points, _straight = self._detector.detectAndDecode(image)
        return _first_text(text)


class NativeBarcodeDecoder(Decoder):
    name = "native-barcode"

    def __init__(self, cv2_module, formats: Sequence[str] = NATIVE_BARCODE_FORMATS):
        self._formats = {_normalize_format(value) for value in formats}
        barcode_module = getattr(cv2_module, "barcode", None)
        self._detector = barcode_module.BarcodeDetector() if barcode_module is not None else None

    def available(self) -> bool:
        return self._detector is not None

    def decode(self, image) -> Optional[str]:
        if hasattr(self._detector, "detectAndDecodeWithType"):
            ok, texts, types, _points = self._detector.detectAndDecodeWithType(image)
        else:
            ok, texts, types, _points = self._detector.detectAndDecode(image)
        if not ok:
            return None
        for text, kind in zip(texts or (), types or ()):
            if not isinstance(text, str) or not text.strip():
                continue
            normalized = _normalize_format(kind)
            if not normalized or normalized in self._formats:
                return text.strip()
        return None


class ZxingDecoder(Decoder):
    name = "zxing"

    def __init__(self, zxing_module):
        self._zxing = zxing_module

    def decode(self, image) -> Optional[str]:
        results = self._zxing.read_barcodes(image)
        return _first_text(result.text for result in results)


@dataclass
class DecodeResult:
    code: str
    method: str
    attempts: list = field(default_factory=list)


class ScanChain:
    def __init__(self, decoders: Iterable[Decoder]):
        self.decoders = [decoder for decoder in decoders if decoder.available()]

    @property
    def methods(self) -> list[str]:
        return [decoder.name for decoder in self.decoders]

    def decode(self, image) -> DecodeResult:
        attempts = []
        for index, decoder in enumerate(self.decoders, start=1):
            logger.debug("Method %d: %s", index, decoder.name)
            try:
                code = decoder.decode(image)
            except Exception as exc:
                logger.debug("%s failed: %s", decoder.name, exc)
                attempts.append((decoder.name, "error: {}".format(exc)))
                continue
            if code:
                code = code.strip()
                logger.debug("%s found code %s", decoder.name, code)
                attempts.append((decoder.name, "found"))
                return DecodeResult(code=code, method=decoder.name, attempts=attempts)
            attempts.append((decoder.name, "no code"))
        logger.debug("No codes detected by any method")
        raise NoCodeFoundError(attempts=attempts)


class ScannerLibraries:
    """Imports the decoding libraries once; missing ones leave their step out."""

    def __init__(self):
        self._lock = threading.Lock()
        self._chain: Optional[ScanChain] = None
        self.loaded: dict[str, bool] = {}

    @property
    def ready(self) -> bool:
        return self._chain is not None

    @staticmethod
    def _import(name: str):
        try:
            return importlib.import_module(name)
        except ImportError as exc:
            logger.warning("Scanner library %s unavailable: %s", name, exc)
            return None

    def chain(self) -> ScanChain:
        with self._lock:
            if self._chain is None:
                cv2_module = self._import("cv2")
                zxing_module = self._import("zxingcpp")
                decoders: list[Decoder] = []
                if cv2_module is not None:
                    decoders.append(QrDecoder(cv2_module))
                    decoders.append(NativeBarcodeDecoder(cv2_module))
                if zxing_module is not None:
                    decoders.append(ZxingDecoder(zxing_module))
                self._chain = ScanChain(decoders)
                self.loaded = {
                    "opencv": cv2_module is not None,
                    "native_barcode": any(d.name == "native-barcode" for d in self._chain.decoders),
                    "zxing": zxing_module is not None,
                }
                logger.info("Scanning libraries ready: %s", ", ".join(self._chain.methods) or "none")
            return self._chain


_libraries = ScannerLibraries()


def get_scanner_libraries() -> ScannerLibraries:
    return _libraries


def load_image(data: bytes, content_type: Optional[str] = None):
    """Decode uploaded bytes into a BGR array for the detectors."""
    if content_type is not None and not content_type.lower().startswith("image/"):
        raise InvalidImageError()
    if not data:
        raise InvalidImageError()

    import numpy as np
    from PIL import Image, UnidentifiedImageError

    try:
        with Image.open(io.BytesIO(data)) as image:
            rgb = image.convert("RGB")
    except (UnidentifiedImageError, OSError) as exc:
        raise InvalidImageError() from exc
    logger.debug("Loaded image %sx%s", rgb.width, rgb.height)
    return np.ascontiguousarray(np.asarray(rgb)[:, :, ::-1])


def scan_image(data: bytes, content_type: Optional[str] = None, *, chain: Optional[ScanChain] = None) -> DecodeResult:
    image = load_image(data, content_type)
    chain = chain or get_scanner_libraries().chain()
    return chain.decode(image)


def find_product_by_code(products, code: Optional[str]):
    """Exact ``qrCode`` match first, then a case-insensitive one."""
    if code is None:
        return None
    needle = code.strip()
    if not needle:
        return None
    lowered = needle.lower()
    fallback = None
    for product in products:
        qr_code = product.qr_code if hasattr(product, "qr_code") else (product.get("qrCode") or "")
        if not qr_code:
            continue
        if qr_code == needle:
            return product
        if fallback is None and qr_code.lower() == lowered:
            fallback = product
    return fallback


__all__ = [
    "DecodeResult",
    "Decoder",
    "INVALID_IMAGE_MESSAGE",
    "InvalidImageError",
    "NATIVE_BARCODE_FORMATS",
    "NO_CODE_MESSAGE",
    "NativeBarcodeDecoder",
    "NoCodeFoundError",
    "QrDecoder",
    "ScanChain",
    "ScannerError",
    "ScannerLibraries",
    "ZxingDecoder",
    "find_product_by_code",
    "get_scanner_libraries",
    "load_image",
    "scan_image",
]
