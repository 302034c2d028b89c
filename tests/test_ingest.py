"""
Unit tests for upload validation, archive resolution and ingestion.
"""

import gzip
import io
import unittest
import zipfile
from unittest import mock
import sys
from pathlib import Path

import requests

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from threat_analysis.errors import (
    ValidationError, EmptyArchiveError, EmptyPayloadError, EmptyResultError,
    CorruptArchiveError, DemoFetchError, IngestError
)
from threat_analysis.ingest.validation import (
    ALLOWED_EXTENSIONS, MAX_FILE_SIZE, file_extension, format_file_size, validate_upload
)
from threat_analysis.ingest.archive import ArchiveResolver
from threat_analysis.ingest.demo import fetch_demo_dataset, DEMO_FILE_NAME
from threat_analysis.ingest.ingestor import Ingestor

ACCESS_LINES = [
    f'10.0.0.{n} - - [15/Jan/2024:10:00:{n:02d} +0000] "GET /item/{n} HTTP/1.1" 200 512'
    for n in range(1, 11)
]
ACCESS_TEXT = "\n".join(ACCESS_LINES) + "\n"


def make_zip(entries):
    """Build a zip archive in memory from (name, content) pairs."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as archive:
        for name, content in entries:
            archive.writestr(name, content)
    return buffer.getvalue()


class TestValidation(unittest.TestCase):
    """Tests for upload checks."""

    def test_constants(self):
        self.assertEqual(ALLOWED_EXTENSIONS, {'.log', '.txt', '.zip', '.gz'})
        self.assertEqual(MAX_FILE_SIZE, 100 * 1024 * 1024)

    def test_file_extension(self):
        self.assertEqual(file_extension("access.LOG"), ".log")
        self.assertEqual(file_extension("logs.tar.gz"), ".gz")
        self.assertEqual(file_extension("README"), ".readme")

    def test_allowed_extensions_pass(self):
        for name in ("a.log", "b.txt", "c.zip", "d.gz", "E.TXT"):
            self.assertIn(validate_upload(name, 10), ALLOWED_EXTENSIONS)

    def test_disallowed_extension(self):
        for name in ("report.pdf", "image.png", "noextension", "archive.tar"):
            with self.assertRaises(ValidationError):
                validate_upload(name, 10)

    def test_size_limit(self):
        self.assertEqual(validate_upload("a.log", MAX_FILE_SIZE), ".log")
        with self.assertRaises(ValidationError):
            validate_upload("a.log", MAX_FILE_SIZE + 1)

    def test_format_file_size(self):
        self.assertEqual(format_file_size(0), "0 Bytes")
        self.assertEqual(format_file_size(512), "512 Bytes")
        self.assertEqual(format_file_size(1536), "1.5 KB")
        self.assertEqual(format_file_size(MAX_FILE_SIZE), "100 MB")


class TestArchiveResolver(unittest.TestCase):
    """Tests for archive resolution."""

    def setUp(self):
        self.resolver = ArchiveResolver()

    def test_plain_text(self):
        self.assertEqual(self.resolver.resolve(ACCESS_TEXT.encode(), "access.log"), ACCESS_TEXT)

    def test_declared_size_limit(self):
        data = make_zip([("access.log", ACCESS_TEXT)])
        self.assertEqual(self.resolver.resolve(data, "logs.zip", MAX_FILE_SIZE), ACCESS_TEXT)
        with self.assertRaises(ValidationError):
            self.resolver.resolve(data, "logs.zip", MAX_FILE_SIZE + 1)

    def test_plain_text_strips_bom(self):
        text = self.resolver.resolve(b'\xef\xbb\xbfhello\n', "a.txt")
        self.assertEqual(text, "hello\n")

    def test_whitespace_only_text(self):
        with self.assertRaises(EmptyPayloadError):
            self.resolver.resolve(b"  \n\t\n", "blank.txt")

    def test_zip_single_entry(self):
        data = make_zip([("access.log", ACCESS_TEXT)])
        self.assertEqual(self.resolver.resolve(data, "logs.zip"), ACCESS_TEXT)

    def test_zip_prefers_log_entry(self):
        data = make_zip([("README.md", "readme"), ("server.log", "log body")])
        self.assertEqual(self.resolver.resolve(data, "logs.zip"), "log body")

    def test_zip_falls_back_to_first_entry(self):
        data = make_zip([("first.dat", "first"), ("second.csv", "second")])
        self.assertEqual(self.resolver.resolve(data, "logs.zip"), "first")

    def test_zip_skips_directories(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w') as archive:
            archive.writestr(zipfile.ZipInfo("logs/"), "")
            archive.writestr("logs/app.txt", "app body")
        self.assertEqual(self.resolver.resolve(buffer.getvalue(), "logs.zip"), "app body")

    def test_empty_zip(self):
        with self.assertRaises(EmptyArchiveError):
            self.resolver.resolve(make_zip([]), "empty.zip")

    def test_zip_with_only_directories(self):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, 'w') as archive:
            archive.writestr(zipfile.ZipInfo("logs/"), "")
        with self.assertRaises(EmptyArchiveError):
            self.resolver.resolve(buffer.getvalue(), "dirs.zip")

    def test_zip_with_blank_entry(self):
        with self.assertRaises(EmptyPayloadError):
            self.resolver.resolve(make_zip([("access.log", "   \n")]), "blank.zip")

    def test_corrupt_zip(self):
        with self.assertRaises(CorruptArchiveError):
            self.resolver.resolve(b"definitely not a zip", "broken.zip")

    def test_gz_holding_zip(self):
        data = make_zip([("access.log", ACCESS_TEXT)])
        self.assertEqual(self.resolver.resolve(data, "server_logs.gz"), ACCESS_TEXT)

    def test_gz_real_gzip_stream(self):
        data = gzip.compress(ACCESS_TEXT.encode())
        self.assertEqual(self.resolver.resolve(data, "access.log.gz"), ACCESS_TEXT)

    def test_gz_plain_text_fallback(self):
        self.assertEqual(self.resolver.resolve(ACCESS_TEXT.encode(), "access.gz"), ACCESS_TEXT)

    def test_gz_corrupt_stream_falls_back_to_text(self):
        data = b'\x1f\x8b' + b'not really compressed'
        text = self.resolver.resolve(data, "broken.gz")
        self.assertIn("not really compressed", text)

    def test_gz_blank_payload(self):
        with self.assertRaises(EmptyPayloadError):
            self.resolver.resolve(gzip.compress(b"\n\n"), "blank.gz")


class TestIngestor(unittest.TestCase):
    """Tests for the combined ingest operation."""

    def setUp(self):
        self.ingestor = Ingestor()

    def test_zip_with_access_log(self):
        data = make_zip([("access.log", ACCESS_TEXT)])
        result = self.ingestor.ingest(data, "server_logs.zip")

        self.assertEqual(len(result.records), len(ACCESS_LINES))
        self.assertEqual(
            [r.path for r in result.records],
            [f"/item/{n}" for n in range(1, 11)]
        )

    def test_validation_runs_before_resolution(self):
        resolver = mock.Mock(spec=ArchiveResolver)
        parser = mock.Mock()
        ingestor = Ingestor(resolver=resolver, parser=parser)

        with self.assertRaises(ValidationError):
            ingestor.ingest(b"data", "evil.exe")
        with self.assertRaises(ValidationError):
            ingestor.ingest(b"data", "big.log", MAX_FILE_SIZE + 1)

        resolver.resolve.assert_not_called()
        parser.parse.assert_not_called()

    def test_declared_size_defaults_to_length(self):
        with mock.patch('threat_analysis.ingest.ingestor.validate_upload') as validate:
            self.ingestor.ingest(ACCESS_TEXT.encode(), "access.log")
        validate.assert_called_once_with("access.log", len(ACCESS_TEXT.encode()))

    def test_blank_text_is_empty_payload(self):
        with self.assertRaises(EmptyPayloadError):
            self.ingestor.ingest(b"   \n  \n", "blank.txt")

    def test_unparseable_text_is_empty_result(self):
        with self.assertRaises(EmptyResultError):
            self.ingestor.ingest(b"nothing\nrecognisable\n", "junk.txt")

    def test_errors_share_base_class(self):
        for error in (ValidationError, EmptyArchiveError, EmptyPayloadError,
                      EmptyResultError, CorruptArchiveError, DemoFetchError):
            self.assertTrue(issubclass(error, IngestError))


class TestDemoFetch(unittest.TestCase):
    """Tests for the demo dataset download."""

    @mock.patch('threat_analysis.ingest.demo.requests.get')
    def test_returns_content(self, mock_get):
        mock_get.return_value = mock.Mock(ok=True, content=b"zip-bytes")

        self.assertEqual(fetch_demo_dataset("https://example.test/logs.zip", timeout=5), b"zip-bytes")
        mock_get.assert_called_once_with("https://example.test/logs.zip", timeout=5)

    @mock.patch('threat_analysis.ingest.demo.requests.get')
    def test_http_error(self, mock_get):
        mock_get.return_value = mock.Mock(ok=False, status_code=404, reason="Not Found")

        with self.assertRaises(DemoFetchError) as ctx:
            fetch_demo_dataset()
        self.assertIn("404", str(ctx.exception))

    @mock.patch('threat_analysis.ingest.demo.requests.get')
    def test_network_error(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("unreachable")

        with self.assertRaises(DemoFetchError):
            fetch_demo_dataset()

    def test_demo_file_name(self):
        self.assertEqual(DEMO_FILE_NAME, "server_logs.zip")


if __name__ == '__main__':
    unittest.main()
