from __future__ import annotations

import logging

from dcim_sort.models import ProcessingStats
from dcim_sort.run_summary import (
    has_activity,
    has_detailed_activity,
    log_detailed_summary,
    log_run_recap,
    summarize_messages,
)


def test_activity_detection():
    stats = ProcessingStats()
    assert not has_activity(stats)
    assert not has_detailed_activity(stats)
    stats.register_sorted()
    assert has_activity(stats)
    assert not has_detailed_activity(stats)
    stats.register_skipped("a.jpg: destination-taken")
    assert has_detailed_activity(stats)


def test_summarize_messages_groups_duplicates():
    lines = summarize_messages(["b", "a", "b", "c"], limit=2)
    assert lines == ["2x b", "a", "... 1 more (use --verbose for the full list)"]


def test_summarize_messages_empty():
    assert summarize_messages([]) == []


def test_run_recap_lists_counters(caplog):
    stats = ProcessingStats()
    stats.register_sorted()
    stats.register_renamed()
    stats.register_duplicate()
    stats.register_directory("/out/canon")
    with caplog.at_level(logging.INFO, logger="dcim_sort.run_summary"):
        log_run_recap(stats, 1.5, dry_run=True)
    text = caplog.text
    assert "Run Recap" in text
    assert "dry-run" in text
    assert "Renamed" in text
    assert "/out/canon" in text


def test_detailed_summary_includes_errors_by_kind(caplog):
    stats = ProcessingStats()
    stats.register_skipped("cannot compare", is_error=True, kind="comparison")
    with caplog.at_level(logging.INFO, logger="dcim_sort.run_summary"):
        log_detailed_summary(stats)
    assert "Errors (1)" in caplog.text
    assert "comparison: 1" in caplog.text
