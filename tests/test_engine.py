import json
import logging

from nobo.cache_store import load_cache_record, load_marker, save_cache_record
from nobo.engine import CacheEngine
from nobo.models import CacheRecord, ContentSnapshot, StrategyName, StrategyResult
from nobo.strategies import BaseCacheStrategy, StrategyRegistry


class StubStrategy(BaseCacheStrategy):
    def __init__(self, settings, name, priority, outcome):
        super().__init__(settings)
        self._name = name
        self._priority = priority
        self.outcome = outcome
        self.calls = 0

    @property
    def name(self):
        return self._name

    @property
    def priority(self):
        return self._priority

    def attempt(self):
        self.calls += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


def test_no_output_dir_means_no_cache_available(settings, fake_vcs):
    save_cache_record(settings.cache_file, CacheRecord(hashes=ContentSnapshot()))

    result = CacheEngine(settings, vcs=fake_vcs).check()
    assert result.is_valid is False
    assert result.changes == ["no-cache-available"]
    assert result.strategy is StrategyName.NONE
    assert result.to_dict() == {
        "isValid": False,
        "changes": ["no-cache-available"],
        "strategyName": "none",
    }


def test_first_answer_wins(settings):
    first = StubStrategy(settings, StrategyName.LOCAL, 300, None)
    second = StubStrategy(
        settings, StrategyName.VCS, 200, StrategyResult(True, [], StrategyName.VCS)
    )
    third = StubStrategy(settings, StrategyName.CI, 100, StrategyResult(False, ["x"]))
    registry = StrategyRegistry()
    for strategy in (third, first, second):
        registry.register(strategy)

    result = CacheEngine(settings, vcs=object(), registry=registry).check()
    assert result.strategy is StrategyName.VCS
    assert result.is_valid
    assert (first.calls, second.calls, third.calls) == (1, 1, 0)


def test_failing_strategy_is_skipped_with_warning(settings, caplog):
    broken = StubStrategy(settings, StrategyName.LOCAL, 300, RuntimeError("disk on fire"))
    fallback = StubStrategy(
        settings, StrategyName.CI, 100, StrategyResult(False, ["modified:posts/a.json"], StrategyName.CI)
    )
    registry = StrategyRegistry()
    registry.register(broken)
    registry.register(fallback)

    with caplog.at_level(logging.WARNING, logger="nobo.engine"):
        result = CacheEngine(settings, vcs=object(), registry=registry).check()

    assert result.strategy is StrategyName.CI
    assert result.changes == ["modified:posts/a.json"]
    assert "disk on fire" in caplog.text


def test_all_strategies_failing_still_returns_rebuild(settings):
    registry = StrategyRegistry()
    registry.register(StubStrategy(settings, StrategyName.LOCAL, 300, OSError("a")))
    registry.register(StubStrategy(settings, StrategyName.VCS, 200, ValueError("b")))

    result = CacheEngine(settings, vcs=object(), registry=registry).check()
    assert result == StrategyResult.no_cache()


def test_persist_then_check_hits_local_cache(settings, fake_vcs):
    engine = CacheEngine(settings, vcs=fake_vcs)
    settings.output_dir.mkdir()

    assert engine.persist() is True
    record = load_cache_record(settings.cache_file)
    assert sorted(record.hashes.posts) == ["a.json", "b.json"]
    marker = load_marker(settings.marker_path)
    assert marker.commit == "c0ffee"
    assert marker.hashes == record.hashes

    result = engine.check()
    assert result.is_valid
    assert result.strategy is StrategyName.LOCAL


def test_persisted_files_use_documented_keys(settings, fake_vcs):
    settings.output_dir.mkdir()
    CacheEngine(settings, vcs=fake_vcs).persist()

    cache = json.loads(settings.cache_file.read_text(encoding="utf-8"))
    assert set(cache) == {"lastBuild", "hashes", "version"}
    assert set(cache["hashes"]) == {"posts", "config", "themes", "files"}
    marker = json.loads(settings.marker_path.read_text(encoding="utf-8"))
    assert set(marker) == {"commit", "buildTime", "hashes"}


def test_vcs_marker_used_when_cache_file_is_gone(settings, fake_vcs):
    engine = CacheEngine(settings, vcs=fake_vcs)
    settings.output_dir.mkdir()
    engine.persist()
    settings.cache_file.unlink()

    result = engine.check()
    assert result.is_valid
    assert result.strategy is StrategyName.VCS


def test_persist_without_version_control_skips_marker(settings, fake_vcs):
    fake_vcs.repository = False
    settings.output_dir.mkdir()

    assert CacheEngine(settings, vcs=fake_vcs).persist() is True
    assert settings.cache_file.exists()
    assert not settings.marker_path.exists()


def test_persist_failure_is_not_raised_and_drops_stale_cache(
    settings, fake_vcs, monkeypatch, caplog
):
    settings.output_dir.mkdir()
    engine = CacheEngine(settings, vcs=fake_vcs)
    engine.persist()

    def fail(path, record):
        raise OSError("read-only file system")

    monkeypatch.setattr("nobo.engine.save_cache_record", fail)
    (settings.posts_dir / "a.json").write_text("{}", encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="nobo.engine"):
        assert engine.persist() is False

    assert "read-only file system" in caplog.text
    assert not settings.cache_file.exists()


def test_marker_failure_drops_stale_marker(settings, fake_vcs):
    settings.output_dir.mkdir()
    engine = CacheEngine(settings, vcs=fake_vcs)
    engine.persist()

    fake_vcs.revision = None
    assert engine.persist() is False
    assert settings.cache_file.exists()
    assert not settings.marker_path.exists()


def test_status_and_clear(settings, fake_vcs):
    engine = CacheEngine(settings, vcs=fake_vcs)
    status = engine.status()
    assert status.record is None
    assert status.marker is None
    assert engine.clear() == []

    settings.output_dir.mkdir()
    engine.persist()
    status = engine.status()
    assert status.record is not None
    assert status.marker.commit == "c0ffee"

    removed = engine.clear()
    assert removed == [settings.cache_file, settings.marker_path]
    assert engine.status().record is None


def test_status_reports_unusable_files(settings, fake_vcs):
    settings.cache_file.write_text("garbage", encoding="utf-8")
    status = CacheEngine(settings, vcs=fake_vcs).status()
    assert status.record is None
    assert len(status.problems) == 1


def test_status_reports_out_of_range_timestamp(settings, fake_vcs):
    settings.cache_file.write_text(
        json.dumps({"lastBuild": 1e30, "hashes": {}, "version": "1"}), encoding="utf-8"
    )
    status = CacheEngine(settings, vcs=fake_vcs).status()
    assert status.record is None
    assert "invalid timestamp" in status.problems[0]


def test_clear_leaves_directory_at_cache_path(settings, fake_vcs):
    settings.cache_file.mkdir()
    engine = CacheEngine(settings, vcs=fake_vcs)

    assert engine.clear() == []
    assert settings.cache_file.is_dir()
    assert engine.status().record is None


def test_begin_build_invalidates_every_strategy(settings, fake_vcs):
    engine = CacheEngine(settings, vcs=fake_vcs)
    settings.output_dir.mkdir()
    engine.persist()
    (settings.output_dir / "index.html").write_text("<html></html>", encoding="utf-8")

    assert engine.begin_build() is True
    assert not settings.cache_file.exists()
    assert not settings.marker_path.exists()
    assert settings.pending_path.exists()
    assert engine.status().pending is True
    assert engine.check() == StrategyResult.no_cache()


def test_finish_build_persists_and_clears_pending(settings, fake_vcs):
    engine = CacheEngine(settings, vcs=fake_vcs)
    settings.output_dir.mkdir()
    engine.begin_build()

    assert engine.finish_build() is True
    assert not settings.pending_path.exists()
    assert engine.status().pending is False
    assert engine.check().strategy is StrategyName.LOCAL


def test_begin_build_fails_when_stale_cache_cannot_be_removed(
    settings, fake_vcs, monkeypatch
):
    settings.output_dir.mkdir()
    engine = CacheEngine(settings, vcs=fake_vcs)
    engine.persist()

    def fail(path):
        raise PermissionError(f"cannot remove {path}")

    monkeypatch.setattr("nobo.engine.remove_file", fail)
    assert engine.begin_build() is False
    assert not settings.pending_path.exists()
