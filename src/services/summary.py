from __future__ import annotations

from ..models.records import Domain
from .sync import SyncResult
from .validator import FindingCounts

"""SUMMARY line bodies for the CLI.

The renderers return the text after the label; ``log_summary`` adds the
``SUMMARY`` label when the line is logged:
    SUMMARY action=sync domain={d} synced={n} skipped={n} duplicates={n} elapsed_sec={s}
    SUMMARY action=validate domain={d} rows={n} errors={n} warnings={n}
"""

__all__ = [
    "format_seconds",
    "render_sync_summary",
    "render_validation_summary",
]


def format_seconds(value: float) -> str:
    """Integers without decimals, tiny values without scientific notation."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_sync_summary(result: SyncResult) -> str:
    """Render the SUMMARY body of a sync (without the label).

    >>> r = SyncResult(domain="clients", synced=9, skipped=1, duplicates=0, elapsed_seconds=2.0)
    >>> render_sync_summary(r)
    'action=sync domain=clients synced=9 skipped=1 duplicates=0 elapsed_sec=2'
    """
    return (
        f"action=sync domain={result.domain} "
        f"synced={result.synced} "
        f"skipped={result.skipped} "
        f"duplicates={result.duplicates} "
        f"elapsed_sec={format_seconds(result.elapsed_seconds)}"
    )


def render_validation_summary(domain: Domain | str, rows: int, counts: FindingCounts) -> str:
    return (
        f"action=validate domain={Domain(domain).value} "
        f"rows={rows} "
        f"errors={counts.errors} "
        f"warnings={counts.warnings}"
    )
