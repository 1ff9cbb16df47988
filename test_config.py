"""Tests for settings loading from YAML and the environment."""

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from core.config import DEFAULT_DATABASE_URL, Duration, Settings, load_settings
from core.models import JobKind


JOBS_YAML = """
poll_interval: 0.5
jobs:
  - kind: movies
    interval:
      minutes: 30
    timeout:
      hours: 1
    options:
      max_retries: 2
"""


@pytest.fixture()
def jobs_file(tmp_path: Path) -> Path:
    path = tmp_path / "jobs.yml"
    path.write_text(JOBS_YAML)
    return path


class TestDuration:
    def test_units_combine(self) -> None:
        assert Duration(hours=1, minutes=30).to_timedelta() == timedelta(minutes=90)

    def test_requires_a_unit(self) -> None:
        with pytest.raises(ValidationError):
            Duration()

    def test_rejects_zero(self) -> None:
        with pytest.raises(ValidationError):
            Duration(seconds=0)

    def test_rejects_negative(self) -> None:
        with pytest.raises(ValidationError):
            Duration(minutes=-5)


class TestSettings:
    def test_from_yaml(self, jobs_file: Path) -> None:
        settings = Settings.from_yaml(jobs_file)

        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.poll_interval == 0.5
        [job] = settings.jobs
        assert job.kind is JobKind.MOVIES
        assert job.interval.to_timedelta() == timedelta(minutes=30)
        assert job.timeout.to_timedelta() == timedelta(hours=1)
        assert job.options == {"max_retries": 2}

    def test_overrides_win_and_none_is_ignored(self, jobs_file: Path) -> None:
        settings = Settings.from_yaml(jobs_file, database_url="other.db", log_level=None)
        assert settings.database_url == "other.db"
        assert settings.log_level == "INFO"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            Settings.from_yaml(tmp_path / "missing.yml")

    def test_requires_jobs(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yml"
        path.write_text("jobs: []\n")
        with pytest.raises(ValidationError):
            Settings.from_yaml(path)

    def test_unknown_job_kind(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yml"
        path.write_text("jobs:\n  - kind: podcasts\n    interval: {hours: 1}\n")
        with pytest.raises(ValidationError):
            Settings.from_yaml(path)

    def test_log_level_normalised(self, jobs_file: Path) -> None:
        assert Settings.from_yaml(jobs_file, log_level="debug").log_level == "DEBUG"

    def test_unknown_log_level(self, jobs_file: Path) -> None:
        with pytest.raises(ValidationError):
            Settings.from_yaml(jobs_file, log_level="chatty")


class TestLoadSettings:
    def test_environment_overrides(self, jobs_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("JOBS_CONFIG", str(jobs_file))
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///tmp/env.db")
        monkeypatch.setenv("LOG_LEVEL", "warning")

        settings = load_settings()

        assert settings.database_url == "sqlite+aiosqlite:///tmp/env.db"
        assert settings.log_level == "WARNING"

    def test_explicit_path_beats_environment(
        self, jobs_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("JOBS_CONFIG", str(tmp_path / "missing.yml"))
        monkeypatch.delenv("DATABASE_URL", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)

        settings = load_settings(str(jobs_file))
        assert settings.poll_interval == 0.5


class TestOverrides:
    def test_with_overrides_validates_log_level(self, jobs_file: Path) -> None:
        settings = Settings.from_yaml(jobs_file)
        assert settings.with_overrides(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            settings.with_overrides(log_level="chatty")

    def test_with_overrides_keeps_jobs(self, jobs_file: Path) -> None:
        settings = Settings.from_yaml(jobs_file).with_overrides(poll_interval=2)
        assert settings.poll_interval == 2
        assert settings.jobs[0].interval.to_timedelta() == timedelta(minutes=30)
