import gzip
import io
import logging
import os
import tempfile

import pytest

from core.logging_setup import (
    LOG_FORMAT,
    CompressedRotatingFileHandler,
    SafeStreamHandler,
    setup_logging,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


class TestCompressedRotatingFileHandler:
    """Test suite for CompressedRotatingFileHandler."""

    def test_rotation_filename(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            handler = CompressedRotatingFileHandler(
                os.path.join(tmpdir, "solver.log"), maxBytes=1024, backupCount=3
            )
            try:
                assert handler.rotation_filename("solver.log.1") == "solver.log.1.gz"
            finally:
                handler.close()

    def test_rotate_compresses_and_removes_source(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            source = os.path.join(tmpdir, "solver.log.1")
            dest = source + ".gz"
            content = b"[LIFECYCLE] recaptcha_solve | state=done\n" * 20
            with open(source, "wb") as f:
                f.write(content)

            handler = CompressedRotatingFileHandler(
                os.path.join(tmpdir, "solver.log"), maxBytes=1024, backupCount=3
            )
            try:
                handler.rotate(source, dest)
            finally:
                handler.close()

            assert not os.path.exists(source)
            with gzip.open(dest, "rb") as f:
                assert f.read() == content


class TestSafeStreamHandler:
    """Test suite for SafeStreamHandler."""

    def test_unencodable_message_is_replaced(self):
        raw = io.BytesIO()
        stream = io.TextIOWrapper(raw, encoding="ascii")
        handler = SafeStreamHandler(stream)
        handler.setFormatter(logging.Formatter("%(message)s"))
        record = logging.LogRecord(
            "test", logging.INFO, __file__, 1, "callback ✓ ok", None, None
        )

        handler.emit(record)
        stream.flush()

        assert raw.getvalue() == b"callback ? ok\n"


class TestSetupLogging:
    """Test suite for setup_logging."""

    def test_console_and_file_handlers(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            log_file = os.path.join(tmpdir, "logs", "recaptcha_solver.log")
            setup_logging("DEBUG", log_file=log_file)

            root = logging.getLogger()
            assert root.level == logging.DEBUG
            kinds = {type(h) for h in root.handlers}
            assert SafeStreamHandler in kinds
            assert CompressedRotatingFileHandler in kinds
            assert os.path.isdir(os.path.join(tmpdir, "logs"))
            assert all(h.formatter._fmt == LOG_FORMAT for h in root.handlers)
            for handler in root.handlers:
                handler.close()

    def test_console_only(self):
        setup_logging("WARNING", log_file=None)

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert [type(h) for h in root.handlers] == [SafeStreamHandler]

    def test_unknown_level_defaults_to_info(self):
        setup_logging("VERBOSE", log_file=None)
        assert logging.getLogger().level == logging.INFO
