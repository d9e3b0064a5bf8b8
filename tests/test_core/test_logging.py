"""Tests for logging setup."""

import logging
from types import SimpleNamespace

from cronwatch.core.logging import _quiet_paths_filter


def _record(message: str, level: int) -> dict:
    return {"message": message, "level": SimpleNamespace(no=level)}


class TestQuietPathsFilter:
    def test_drops_polled_access_lines_at_info(self):
        """Should hide /health and /webhook-messages access lines above DEBUG."""
        assert _quiet_paths_filter(_record('"GET /health HTTP/1.1" 200', logging.INFO)) is False
        assert _quiet_paths_filter(_record('"GET /webhook-messages HTTP/1.1" 200', logging.INFO)) is False

    def test_keeps_polled_access_lines_at_debug(self):
        assert _quiet_paths_filter(_record('"GET /health HTTP/1.1" 200', logging.DEBUG)) is True

    def test_keeps_other_messages(self):
        """Should pass through everything else."""
        assert _quiet_paths_filter(_record("health_tick_completed", logging.INFO)) is True
