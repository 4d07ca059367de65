import logging
from pathlib import Path

from bulk_scraper.logging_conf import (
    available_batch_logs,
    batch_log_path,
    batch_logger,
    configure_logging,
    default_log_dir,
    tail_log,
)


def test_configure_logging_is_idempotent():
    first = configure_logging()
    second = configure_logging(verbose=True)
    first.info("logging_smoke_test")
    assert second is not None


def test_default_log_dir_follows_home(temp_home):
    assert default_log_dir() == temp_home.resolve() / "logs"


def test_tail_log(tmp_path: Path):
    path = tmp_path / "scraper.log"
    path.write_text("".join(f"line {index}\n" for index in range(10)), encoding="utf-8")
    assert tail_log(path, 3) == ["line 7\n", "line 8\n", "line 9\n"]
    assert tail_log(path, 0) == []
    assert tail_log(tmp_path / "missing.log") == []


def test_batch_log_path_slugifies(temp_home):
    assert batch_log_path("my seeds/2024") == temp_home.resolve() / "logs" / "batches" / "my_seeds_2024.log"


def test_batch_logger_writes_own_file(temp_home):
    logger = batch_logger("nightly")
    logger.info("batch_started", concurrency=2)
    path = batch_log_path("nightly")
    assert path.exists()
    assert "batch_started" in path.read_text(encoding="utf-8")
    assert path in available_batch_logs()
    # A second call reuses the existing handler.
    batch_logger("nightly")
    assert len(logging.getLogger("bulk_scraper.batch.nightly").handlers) == 1


def test_no_batch_logs(temp_home):
    assert available_batch_logs() == []
