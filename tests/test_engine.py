"""
Rotation engine tests: rotation steps, empty-file rule, name uniqueness,
backend lock, scheduling triggers, purge integration, failure handling.
"""

from __future__ import annotations
import gzip
import os
from pathlib import Path

import pytest

from rotation.engine import RotationEngine
from rotation.errors import (
    ArchiveNameError,
    CompressionLockedError,
    ConfigError,
    FatalLogError,
    RotationError,
    UnsupportedCompressionError,
)
from rotation.naming import MAX_SEQUENCE
from conftest import archives


def test_defaults(log_dir):
    e = RotationEngine(log_dir)
    assert e.backend.name == "none"
    assert e.schedule.last_rotation is None
    assert e.schedule.rotate_after is None
    assert not e.is_open


def test_missing_directory_is_config_error(tmp_path):
    with pytest.raises(ConfigError):
        RotationEngine(tmp_path / "nope")


def test_start_opens_current_without_archiving(engine, log_dir):
    assert engine.is_open
    assert (log_dir / ".current").exists()
    assert archives(log_dir) == []


def test_start_archives_leftover_current(make_engine, log_dir, clock):
    (log_dir / ".current").write_bytes(b"from a crashed run")
    e = make_engine()
    assert archives(log_dir) == [f"{int(clock.now)}.msgpack"]
    assert (log_dir / f"{int(clock.now)}.msgpack").read_bytes() == b"from a crashed run"
    assert e.tell() == 0


def test_rotate_renames_and_reopens(engine, log_dir, clock):
    engine.write(b"record-1")
    result = engine.rotate()
    assert result.archived == f"{int(clock.now)}.msgpack"
    assert (log_dir / result.archived).read_bytes() == b"record-1"
    assert engine.is_open
    assert (log_dir / ".current").stat().st_size == 0


def test_empty_current_is_never_archived(engine, log_dir):
    engine.rotate()
    engine.rotate()
    assert archives(log_dir) == []
    assert engine.is_open


def test_same_second_rotations_get_distinct_names(engine, log_dir, clock):
    names = []
    for i in range(3):
        engine.write(b"r%d" % i)
        names.append(engine.rotate().archived)
    t = int(clock.now)
    assert names == [f"{t}.msgpack", f"{t}.00001.msgpack", f"{t}.00002.msgpack"]
    assert engine.seq == 2
    assert len(set(names)) == 3


def test_seq_resets_each_rotation(engine, clock):
    engine.write(b"a")
    engine.rotate()
    engine.write(b"b")
    engine.rotate()
    clock.advance(1)
    engine.write(b"c")
    assert engine.rotate().archived == f"{int(clock.now)}.msgpack"
    assert engine.seq == 0


def test_name_exhaustion_fails_rotation(engine, monkeypatch):
    probed = []
    monkeypatch.setattr("rotation.engine.os.path.lexists", lambda p: probed.append(p) or True)
    engine.write(b"x")
    with pytest.raises(ArchiveNameError, match="after 65535 attempts"):
        engine.rotate()
    assert len(probed) == MAX_SEQUENCE
    assert engine.seq == MAX_SEQUENCE - 1


def test_name_too_long_fails_rotation(engine, monkeypatch):
    monkeypatch.setattr("rotation.engine.build_archive_name", lambda now, seq, ext: None)
    with pytest.raises(ArchiveNameError):
        engine.rotate()


def test_rename_failure_is_not_fatal(engine, log_dir, monkeypatch, caplog):
    engine.write(b"keep me")

    def deny(src, dst):
        raise PermissionError("denied")

    monkeypatch.setattr("rotation.engine.os.rename", deny)
    result = engine.rotate()
    assert result.archived is None
    assert engine.is_open
    # data stays in the current file; new writes append after it
    engine.write(b"+more")
    engine.close()
    assert (log_dir / ".current").read_bytes() == b"keep me+more"
    assert "Unable to rename" in caplog.text


def test_open_failure_is_fatal(engine, monkeypatch):
    def refuse(path):
        raise PermissionError("read-only fs")

    monkeypatch.setattr(engine.backend, "_open", refuse)
    with pytest.raises(FatalLogError):
        engine.rotate()
    assert not engine.is_open


def test_close_failure_aborts_rotation(engine, log_dir, monkeypatch):
    engine.write(b"x")

    def bad_close():
        fp, engine.backend._fp = engine.backend._fp, None
        fp.close()
        raise OSError("flush failed")

    monkeypatch.setattr(engine.backend, "close", bad_close)
    with pytest.raises(RotationError):
        engine.rotate()
    assert archives(log_dir) == []


def test_write_before_start_is_rejected(make_engine):
    e = make_engine(start=False)
    with pytest.raises(RotationError):
        e.write(b"x")


def test_close_is_idempotent(engine):
    engine.close()
    engine.close()
    assert not engine.is_open


# ---- compression selection ----

def test_set_compression_before_open(make_engine, log_dir):
    e = make_engine(compression="GZip")
    assert e.backend.name == "gzip"
    assert e.current_path == log_dir / ".current.gz"


def test_set_compression_unknown_keeps_backend(make_engine):
    e = make_engine(start=False)
    with pytest.raises(UnsupportedCompressionError):
        e.set_compression("lz4")
    assert e.backend.name == "none"


def test_switching_backend_mid_file_is_rejected(engine, log_dir):
    engine.write(b"abc")
    with pytest.raises(CompressionLockedError):
        engine.set_compression("gzip")
    # same backend is a harmless no-op
    engine.set_compression("none")
    engine.write(b"def")
    engine.close()
    assert (log_dir / ".current").read_bytes() == b"abcdef"


def test_backend_stays_fixed_after_close(engine, log_dir):
    engine.write(b"plain")
    engine.close()
    with pytest.raises(CompressionLockedError):
        engine.set_compression("gzip")
    assert engine.backend.name == "none"
    engine.rotate()
    assert engine.current_path == log_dir / ".current"
    assert archives(log_dir, ".gz") == []


def test_gzip_rotation(make_engine, log_dir, clock):
    e = make_engine(compression="gzip", soft_limit=5)
    e.write(b"compressed!")
    assert e.tell() == 11  # uncompressed offset
    result = e.rotate_if_needed()
    assert result.archived == f"{int(clock.now)}.msgpack.gz"
    with gzip.open(log_dir / result.archived, "rb") as f:
        assert f.read() == b"compressed!"
    assert archives(log_dir, ".gz") == [result.archived]


def test_gzip_empty_rotations_create_nothing(make_engine, log_dir):
    e = make_engine(compression="gzip")
    e.rotate()
    e.rotate()
    assert archives(log_dir, ".gz") == []


# ---- scheduling ----

def test_size_trigger_scenario(make_engine, log_dir):
    e = make_engine(soft_limit=10)
    e.write(b"x" * 11)
    result = e.rotate_if_needed()
    assert result is not None
    assert len(archives(log_dir)) == 1
    assert e.is_open and e.tell() == 0
    assert (log_dir / ".current").stat().st_size == 0


def test_below_soft_limit_does_not_rotate(make_engine, log_dir):
    e = make_engine(soft_limit=10)
    e.write(b"x" * 9)
    assert e.rotate_if_needed() is None
    assert archives(log_dir) == []


def test_interval_disabled_never_rotates_but_purges(make_engine, log_dir, clock, monkeypatch):
    e = make_engine(soft_limit=1000, max_files=5)
    calls = []
    real_purge = e._purge
    monkeypatch.setattr(e, "_purge", lambda: calls.append(1) or real_purge())
    for _ in range(5):
        e.write(b"tiny")
        clock.advance(10_000)
        assert e.rotate_if_needed() is None
    assert archives(log_dir) == []
    assert len(calls) == 5


def test_time_trigger(make_engine, log_dir, clock):
    e = make_engine(rotate_after=60)
    e.write(b"a")
    clock.advance(30)
    assert e.rotate_if_needed() is None
    assert e.seconds_until_next_rotation().seconds == 30
    clock.advance(30)
    result = e.rotate_if_needed()
    assert result is not None and result.archived
    # baseline moved: the next rotation is a full interval away
    assert e.seconds_until_next_rotation().seconds == 60
    e.write(b"b")
    assert e.rotate_if_needed() is None


def test_clock_going_backwards_rotates_once(make_engine, log_dir, clock):
    e = make_engine(rotate_after=60)
    e.write(b"before the jump")
    clock.advance(-3600)
    result = e.rotate_if_needed()
    assert result is not None
    assert e.schedule.last_rotation == clock.now
    e.write(b"after")
    assert e.rotate_if_needed() is None


# ---- retention through the engine ----

def test_rotation_purges_to_max_files(make_engine, log_dir, clock):
    e = make_engine(max_files=2)
    for _ in range(5):
        e.write(b"data")
        clock.advance(1)
        e.rotate()
        assert len(archives(log_dir)) <= 2
    t = int(clock.now)
    assert archives(log_dir) == [f"{t - 1}.msgpack", f"{t}.msgpack"]


def test_purge_scenario_keeps_newest(make_engine, log_dir):
    for ts in (100, 200, 300):
        (log_dir / f"{ts}.msgpack").write_bytes(b"x")
    e = make_engine(max_files=2, start=False)
    report = e.purge()
    assert report.deleted == ["100.msgpack"]
    assert archives(log_dir) == ["200.msgpack", "300.msgpack"]


def test_purge_max_space(make_engine, log_dir, clock):
    e = make_engine(max_space=25)
    for _ in range(4):
        e.write(b"x" * 10)
        clock.advance(1)
        e.rotate()
    total = sum((log_dir / n).stat().st_size for n in archives(log_dir))
    assert total <= 25
    assert len(archives(log_dir)) == 2


def test_status(engine, log_dir):
    (log_dir / "100.msgpack").write_bytes(b"12345")
    engine.write(b"abc")
    st = engine.status()
    assert st["compression"] == "none"
    assert st["open"] is True
    assert st["position"] == 3
    assert st["archives"] == {"count": 1, "total_bytes": 5}
    assert Path(st["directory"]) == log_dir


def test_archive_names_sort_by_age(engine, log_dir, clock):
    for _ in range(3):
        engine.write(b".")
        engine.rotate()
    clock.advance(1)
    engine.write(b".")
    engine.rotate()
    names = archives(log_dir)
    assert len(names) == 4
    assert all(os.path.getsize(log_dir / n) == 1 for n in names)


def test_unreadable_directory_does_not_fail_rotation(make_engine, log_dir, clock, monkeypatch, caplog):
    e = make_engine(max_files=1)
    e.write(b"data")

    def no_fds(path):
        raise OSError(24, "Too many open files")

    monkeypatch.setattr("rotation.retention.os.scandir", no_fds)
    result = e.rotate()
    assert result.archived == f"{int(clock.now)}.msgpack"
    assert e.is_open
    assert result.purge.within_limits is False
    assert "Unable to scan" in caplog.text

    st = e.status()
    assert st["archives"] is None and st["open"] is True
