import io
import unittest

from PIL import Image

from app.schemas.product import ProductRead
from app.services.scanner_service import (
    Decoder,
    InvalidImageError,
    NativeBarcodeDecoder,
    NoCodeFoundError,
    ScanChain,
    find_product_by_code,
    load_image,
    scan_image,
)


class StubDecoder(Decoder):
    def __init__(self, name, result=None, error=None, available=True):
        self.name = name
        self.result = result
        self.error = error
        self._available = available
        self.calls = 0

    def available(self):
        return self._available

    def decode(self, image):
        self.calls += 1
        if self.error:
            raise self.error
        return self.result


class FakeBarcodeDetector:
    def __init__(self, texts, types):
        self.texts = texts
        self.types = types

    def detectAndDecodeWithType(self, image):
        return True, self.texts, self.types, None


class FakeCv2:
    def __init__(self, detector=None):
        self.barcode = None
        if detector is not None:
            self.barcode = type("BarcodeModule", (), {"BarcodeDetector": staticmethod(lambda: detector)})


def _png_bytes():
    buffer = io.BytesIO()
    Image.new("RGB", (4, 3), color=(255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


class ScanChainTest(unittest.TestCase):
    def test_first_successful_decoder_wins(self):
        qr = StubDecoder("qr", result=None)
        barcode = StubDecoder("native-barcode", result=" 8901234567890 ")
        zxing = StubDecoder("zxing", result="other")
        result = ScanChain([qr, barcode, zxing]).decode(object())
        self.assertEqual(result.code, "8901234567890")
        self.assertEqual(result.method, "native-barcode")
        self.assertEqual(zxing.calls, 0)

    def test_decoder_exception_moves_to_next(self):
        broken = StubDecoder("qr", error=RuntimeError("bad frame"))
        zxing = StubDecoder("zxing", result="QR-1")
        result = ScanChain([broken, zxing]).decode(object())
        self.assertEqual(result.code, "QR-1")
        self.assertEqual(result.attempts[0][0], "qr")
        self.assertTrue(result.attempts[0][1].startswith("error"))

    def test_unavailable_decoders_are_skipped(self):
        chain = ScanChain([StubDecoder("native-barcode", available=False), StubDecoder("zxing", result="A")])
        self.assertEqual(chain.methods, ["zxing"])

    def test_no_code_found(self):
        with self.assertRaises(NoCodeFoundError) as ctx:
            ScanChain([StubDecoder("qr"), StubDecoder("zxing")]).decode(object())
        self.assertEqual(len(ctx.exception.attempts), 2)


class NativeBarcodeDecoderTest(unittest.TestCase):
    def test_missing_module_is_unavailable(self):
        self.assertFalse(NativeBarcodeDecoder(FakeCv2()).available())

    def test_filters_by_format(self):
        detector = FakeBarcodeDetector(["", "ITF-1", "4006381333931"], ["EAN_13", "ITF", "EAN_13"])
        decoder = NativeBarcodeDecoder(FakeCv2(detector))
        self.assertTrue(decoder.available())
        self.assertEqual(decoder.decode(object()), "4006381333931")


class LoadImageTest(unittest.TestCase):
    def test_png_becomes_bgr_array(self):
        array = load_image(_png_bytes(), "image/png")
        self.assertEqual(array.shape, (3, 4, 3))
        self.assertEqual(tuple(array[0, 0]), (0, 0, 255))

    def test_rejects_non_images(self):
        with self.assertRaises(InvalidImageError):
            load_image(b"hello", "text/plain")
        with self.assertRaises(InvalidImageError):
            load_image(b"not an image", "image/png")
        with self.assertRaises(InvalidImageError):
            load_image(b"", None)

    def test_scan_image_uses_given_chain(self):
        result = scan_image(_png_bytes(), "image/png", chain=ScanChain([StubDecoder("zxing", result="QR-9")]))
        self.assertEqual(result.code, "QR-9")


class FindProductTest(unittest.TestCase):
    def setUp(self):
        self.products = [
            ProductRead.model_validate({"_id": "1", "name": "Lower", "qrCode": "abc-1"}),
            ProductRead.model_validate({"_id": "2", "name": "Exact", "qrCode": "ABC-1"}),
            ProductRead.model_validate({"_id": "3", "name": "No code", "qrCode": ""}),
        ]

    def test_exact_match_preferred(self):
        self.assertEqual(find_product_by_code(self.products, "ABC-1").id, "2")

    def test_case_insensitive_fallback(self):
        self.assertEqual(find_product_by_code(self.products[:1], " ABC-1 ").id, "1")

    def test_blank_code_finds_nothing(self):
        self.assertIsNone(find_product_by_code(self.products, "  "))
        self.assertIsNone(find_product_by_code(self.products, None))
        self.assertIsNone(find_product_by_code(self.products, "zzz"))


if __name__ == "__main__":
    unittest.main()
