from __future__ import annotations

import logging
from pathlib import Path
from types import SimpleNamespace

import pytest

from dcim_sort.config import build_app_config
from dcim_sort.metadata import MetadataExtractor
from dcim_sort.models import MetadataBag
from dcim_sort.processor import Processor

SUPPORTED_SEGMENTS = [
    {"type": "ScreenshotPattern", "index": 0, "filenamePattern": "^screenshot", "caseInsensitive": True},
    {"type": "MakeModelPattern", "index": 1, "fallback": "unknown_device"},
    {"type": "DateTimePattern", "index": 2},
]


class TagTableExtractor(MetadataExtractor):
    """Serves EXIF tags from a table keyed by file name."""

    def __init__(self, tags: dict[str, dict[str, str]], hash_algorithm: str = "sha256") -> None:
        super().__init__(hash_algorithm)
        self.tags = tags

    def read_tags(self, path: Path):
        return {name: SimpleNamespace(printable=value) for name, value in self.tags.get(path.name, {}).items()}


CANON = {"Image Make": "Canon", "Image Model": "EOS 90D", "EXIF DateTimeOriginal": "2022:05:01 10:00:00"}


def _config(tmp_path: Path, *, strategy=None, hash_algorithm="sha256", **settings):
    sorter = {
        "supported": {"segments": SUPPORTED_SEGMENTS},
        "fallback": {"segments": [{"type": "SimpleFileTypePattern", "index": 0}]},
    }
    if strategy is not None:
        sorter["duplicateResolution"] = strategy
    return build_app_config(
        {
            "settings": {
                "source_dir": str(tmp_path / "DCIM"),
                "destination_dir": str(tmp_path / "sorted"),
                "hash_algorithm": hash_algorithm,
                "max_workers": 2,
                **settings,
            },
            "sorter": sorter,
        }
    )


def _write(path: Path, content: bytes = b"data") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


@pytest.fixture(autouse=True)
def _quiet_logging(caplog):
    caplog.set_level(logging.WARNING)


def test_sorts_supported_and_fallback_files(tmp_path):
    source = tmp_path / "DCIM"
    _write(source / "100CANON" / "IMG_0001.jpg", b"canon")
    _write(source / "Screenshot_2023.png", b"shot")
    _write(source / "voice.mp3", b"audio")
    config = _config(tmp_path)

    stats = Processor(config, extractor=TagTableExtractor({"IMG_0001.jpg": CANON})).process_all()

    destination = tmp_path / "sorted"
    assert (destination / "canon_eos_90d" / "2022-05" / "IMG_0001.jpg").read_bytes() == b"canon"
    assert (destination / "screenshots" / "unknown_device" / "unknown" / "Screenshot_2023.png").exists()
    assert (destination / "audio_files" / "voice.mp3").exists()
    assert stats.sorted == 3
    assert stats.errors == []
    assert (source / "voice.mp3").exists()


def test_dry_run_touches_nothing(tmp_path):
    _write(tmp_path / "DCIM" / "IMG_0001.jpg")
    config = _config(tmp_path, dry_run=True)

    stats = Processor(config, extractor=TagTableExtractor({"IMG_0001.jpg": CANON})).process_all()

    assert stats.sorted == 1
    assert not (tmp_path / "sorted").exists()


def test_ignore_strategy_keeps_first_file(tmp_path):
    _write(tmp_path / "DCIM" / "a" / "IMG_0001.jpg", b"first")
    _write(tmp_path / "DCIM" / "b" / "IMG_0001.jpg", b"second")
    config = _config(tmp_path)

    stats = Processor(config, extractor=TagTableExtractor({"IMG_0001.jpg": CANON})).process_all()

    target = tmp_path / "sorted" / "canon_eos_90d" / "2022-05" / "IMG_0001.jpg"
    assert target.read_bytes() == b"first"
    assert stats.sorted == 1
    assert stats.skipped == 1
    assert stats.duplicates == 1


def test_compare_rename_keeps_both_files(tmp_path):
    _write(tmp_path / "DCIM" / "a" / "IMG_0001.jpg", b"first")
    _write(tmp_path / "DCIM" / "b" / "IMG_0001.jpg", b"second")
    config = _config(tmp_path, strategy={"strategy": "Compare", "text": "Rename"})

    stats = Processor(config, extractor=TagTableExtractor({"IMG_0001.jpg": CANON})).process_all()

    folder = tmp_path / "sorted" / "canon_eos_90d" / "2022-05"
    assert (folder / "IMG_0001.jpg").read_bytes() == b"first"
    assert (folder / "IMG_0001.jpg.001").read_bytes() == b"second"
    assert stats.sorted == 1
    assert stats.renamed == 1


def test_overwrite_replaces_existing_destination(tmp_path):
    _write(tmp_path / "DCIM" / "IMG_0001.jpg", b"new")
    existing = _write(tmp_path / "sorted" / "canon_eos_90d" / "2022-05" / "IMG_0001.jpg", b"old")
    config = _config(tmp_path, strategy={"strategy": "Overwrite"})

    stats = Processor(config, extractor=TagTableExtractor({"IMG_0001.jpg": CANON})).process_all()

    assert existing.read_bytes() == b"new"
    assert stats.replaced == 1


def test_favor_target_keeps_file_already_on_disk(tmp_path):
    _write(tmp_path / "DCIM" / "IMG_0001.jpg", b"new")
    existing = _write(tmp_path / "sorted" / "canon_eos_90d" / "2022-05" / "IMG_0001.jpg", b"old")
    config = _config(tmp_path, strategy={"strategy": "Compare", "text": "FavorTarget"})

    stats = Processor(config, extractor=TagTableExtractor({"IMG_0001.jpg": CANON})).process_all()

    assert existing.read_bytes() == b"old"
    assert stats.skipped == 1
    assert stats.errors == []


def test_undecidable_comparison_is_reported_and_skipped(tmp_path, monkeypatch):
    _write(tmp_path / "DCIM" / "a" / "IMG_0001.jpg", b"first")
    _write(tmp_path / "DCIM" / "b" / "IMG_0001.jpg", b"second")
    config = _config(tmp_path, strategy={"strategy": "Compare", "text": "Rename"}, hash_algorithm="none")
    extractor = TagTableExtractor({"IMG_0001.jpg": CANON}, hash_algorithm="none")
    original_extract = extractor.extract

    def without_stat(path):
        bag = original_extract(path)
        return MetadataBag(
            filename=bag.filename,
            extension=bag.extension,
            file_kind=bag.file_kind,
            attributes=bag.attributes,
            is_supported_kind=bag.is_supported_kind,
        )

    monkeypatch.setattr(extractor, "extract", without_stat)

    stats = Processor(config, extractor=extractor).process_all()

    assert stats.sorted == 1
    assert stats.errors_by_kind == {"comparison": 1}


def test_ignore_unknown_types(tmp_path):
    _write(tmp_path / "DCIM" / "mystery.xyz")
    _write(tmp_path / "DCIM" / "notes.txt")
    config = _config(tmp_path, ignore_unknown_types=True)

    stats = Processor(config, extractor=TagTableExtractor({})).process_all()

    assert stats.ignored == 1
    assert (tmp_path / "sorted" / "text_files" / "notes.txt").exists()
    assert not (tmp_path / "sorted" / "other").exists()


def test_move_operation_removes_sources(tmp_path):
    source = _write(tmp_path / "DCIM" / "clip.mp4")
    config = _config(tmp_path, operation="move")

    Processor(config, extractor=TagTableExtractor({})).process_all()

    assert not source.exists()
    assert (tmp_path / "sorted" / "videos" / "clip.mp4").exists()


def test_records_created_directories(tmp_path):
    _write(tmp_path / "DCIM" / "clip.mp4")
    stats = Processor(_config(tmp_path), extractor=TagTableExtractor({})).process_all()
    assert stats.created_directories == {str(tmp_path / "sorted" / "videos")}


def test_comparison_outcome_is_logged(tmp_path, caplog):
    _write(tmp_path / "DCIM" / "IMG_0001.jpg", b"new")
    _write(tmp_path / "sorted" / "canon_eos_90d" / "2022-05" / "IMG_0001.jpg", b"old")
    config = _config(tmp_path, strategy={"strategy": "Compare", "text": "FavorTarget"})

    with caplog.at_level(logging.DEBUG, logger="dcim_sort.processor"):
        Processor(config, extractor=TagTableExtractor({"IMG_0001.jpg": CANON})).process_all()

    skipped = [record.getMessage() for record in caplog.records if "Skipping Duplicate" in record.getMessage()]
    assert len(skipped) == 1
    assert "Identical" in skipped[0]
    assert "False" in skipped[0]


def test_renamed_file_log_carries_comparison_outcome(tmp_path, caplog):
    _write(tmp_path / "DCIM" / "a" / "IMG_0001.jpg", b"same")
    _write(tmp_path / "DCIM" / "b" / "IMG_0001.jpg", b"same")
    config = _config(tmp_path, strategy={"strategy": "Compare", "text": "Rename"})

    with caplog.at_level(logging.DEBUG, logger="dcim_sort.processor"):
        Processor(config, extractor=TagTableExtractor({"IMG_0001.jpg": CANON})).process_all()

    sorted_logs = [record.getMessage() for record in caplog.records if "Sorted File" in record.getMessage()]
    assert len(sorted_logs) == 2
    assert "Identical" not in sorted_logs[0]
    assert "Identical" in sorted_logs[1]
    assert "True" in sorted_logs[1]
