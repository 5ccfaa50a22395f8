from __future__ import annotations

import re

import pytest

from src.logging.init import log_summary, setup_logging
from src.services.summary import format_seconds, render_sync_summary, render_validation_summary
from src.services.sync import SyncResult
from src.services.validator import FindingCounts

SYNC_PATTERN = re.compile(
    r"^action=sync domain=(clients|products) synced=([0-9]+) skipped=([0-9]+) "
    r"duplicates=([0-9]+) elapsed_sec=([0-9]+\.?[0-9]*)$"
)


def test_render_sync_summary_matches_format():
    line = render_sync_summary(
        SyncResult(domain="products", synced=120, skipped=3, duplicates=1, elapsed_seconds=1.23456)
    )
    m = SYNC_PATTERN.match(line)
    assert m, line
    assert m.group(2) == "120"
    assert m.group(5) == "1.235"


def test_render_validation_summary():
    line = render_validation_summary("clients", 10, FindingCounts(errors=2, warnings=4))
    assert line == "action=validate domain=clients rows=10 errors=2 warnings=4"


def test_rendered_body_is_labeled_once_when_logged(capsys):
    setup_logging()
    log_summary(render_validation_summary("products", 3, FindingCounts(errors=0, warnings=1)))
    assert capsys.readouterr().out.splitlines() == [
        "SUMMARY action=validate domain=products rows=3 errors=0 warnings=1"
    ]


@pytest.mark.parametrize(
    "value, expected",
    [(0, "0"), (2.0, "2"), (0.0012, "0.0012"), (1.5, "1.5"), (12.3456, "12.346")],
)
def test_format_seconds(value, expected):
    assert format_seconds(value) == expected
