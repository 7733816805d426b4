from repomerge.core.models import BinaryState, FileEntry, Origin
from repomerge.core.text_detector import TextDetector


class TestTextDetector:
    def test_plain_text(self):
        assert TextDetector().classify(b"print('hello')\n") is BinaryState.TEXT

    def test_empty_is_text(self):
        assert TextDetector().classify(b"") is BinaryState.TEXT

    def test_nul_byte_is_binary(self):
        assert TextDetector().classify(b"abc\x00def") is BinaryState.BINARY

    def test_invalid_utf8_is_binary(self):
        assert TextDetector().classify(b"caf\xe9 latin-1") is BinaryState.BINARY

    def test_png_header_is_binary(self):
        assert TextDetector().classify(b'\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR') is BinaryState.BINARY

    def test_multibyte_text(self):
        assert TextDetector().classify("héllo wörld ✓".encode('utf-8')) is BinaryState.TEXT

    def test_character_cut_at_sample_boundary_is_text(self):
        content = "ab✓".encode('utf-8')  # 2 ascii bytes + 3-byte character
        detector = TextDetector(sample_size=4)
        assert detector.classify(content) is BinaryState.TEXT

    def test_nul_after_sample_is_not_seen(self):
        detector = TextDetector(sample_size=8)
        assert detector.classify(b"12345678\x00") is BinaryState.TEXT

    def test_classify_entry_caches_result(self):
        entry = FileEntry("a.txt", 3, Origin.LOCAL, "/tmp/a.txt")
        detector = TextDetector()

        assert detector.classify_entry(entry, b"\x00") is BinaryState.BINARY
        # a later text sample does not change the cached verdict
        assert detector.classify_entry(entry, b"text") is BinaryState.BINARY
        assert entry.is_binary is BinaryState.BINARY
