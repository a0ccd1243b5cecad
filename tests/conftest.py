"""Shared test fixtures for fwrelease."""

from __future__ import annotations

import logging
import shutil
import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

from fwrelease.config import ReleaseSettings
from fwrelease.core.hasher import sha256_hex
from fwrelease.models.artifacts import ObjectHead
from fwrelease.models.versioning import Version

GIT = shutil.which("git")


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Strip release settings from the environment and leave any real .env behind."""
    for name in ReleaseSettings.model_fields:
        monkeypatch.delenv(name.upper(), raising=False)
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(tmp_path / "gitconfig"))
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo configure_logging() so later tests log through the root logger."""
    yield
    package_logger = logging.getLogger("fwrelease")
    for handler in list(package_logger.handlers):
        if getattr(handler, "_fwrelease", False):
            package_logger.removeHandler(handler)
    package_logger.setLevel(logging.NOTSET)
    package_logger.propagate = True


@pytest.fixture
def settings() -> ReleaseSettings:
    """Fully populated settings; nothing read from the environment."""
    return ReleaseSettings(
        _env_file=None,
        update_api_url="https://api.example.test/dev",
        update_api_key="test-key-0123456789",
        aws_account_id="111122223333",
        cross_account_role_arn="arn:aws:iam::111122223333:role/FirmwarePublisher",
        cross_account_external_id="external-secret",
    )


@pytest.fixture
def tagged_version() -> Version:
    return Version(
        raw="v1.15.4",
        short_form="1.15.4",
        commit_hash="a1b2c3d4e5f60718293a4b5c6d7e8f9012345678",
        branch="main",
        is_tagged_release=True,
    )


# ---------------------------------------------------------------------------
# Retry timing
# ---------------------------------------------------------------------------


class SleepRecorder:
    """Stands in for the backoff wait; records delays instead of sleeping."""

    def __init__(self, on_sleep: Callable[[float], bool] | None = None) -> None:
        self.delays: list[float] = []
        self._on_sleep = on_sleep

    def __call__(self, seconds: float) -> bool:
        self.delays.append(seconds)
        return self._on_sleep(seconds) if self._on_sleep else False


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_sleep_recorder() -> Callable[..., SleepRecorder]:
    """Factory fixture: a recorder that runs ``on_sleep`` on every wait."""
    return SleepRecorder


# ---------------------------------------------------------------------------
# In-memory object store
# ---------------------------------------------------------------------------


class FakeObjectStore:
    """Dict-backed ``ObjectStore`` with hooks for injecting failures.

    ``put_failures`` are raised by successive ``put`` calls (one each) before
    anything is stored, or after storing when ``put_lands`` is set.
    ``head_failures`` maps a key to an exception raised on every lookup, or
    to a list consumed one lookup at a time. ``tamper`` is merged into
    stored metadata and ``size_skew`` is added to reported lengths, to
    simulate corruption.
    """

    def __init__(self, bucket: str = "test-bucket") -> None:
        self.bucket = bucket
        self.objects: dict[str, tuple[bytes, dict[str, str]]] = {}
        self.calls: list[tuple[str, str]] = []
        self.put_failures: list[Exception] = []
        self.head_failures: dict[str, Exception | list[Exception]] = {}
        self.put_lands = False
        self.tamper: dict[str, str] = {}
        self.size_skew = 0
        self.on_put: Callable[[str], None] | None = None

    def head(self, key: str) -> ObjectHead | None:
        self.calls.append(("head", key))
        failure = self.head_failures.get(key)
        if isinstance(failure, list):
            failure = failure.pop(0) if failure else None
        if failure is not None:
            raise failure
        if key not in self.objects:
            return None
        data, metadata = self.objects[key]
        return ObjectHead(key=key, content_length=len(data) + self.size_skew, metadata=dict(metadata))

    def put(self, key: str, source: Path, metadata: dict[str, str]) -> None:
        self.calls.append(("put", key))
        if self.put_failures and not self.put_lands:
            raise self.put_failures.pop(0)
        stored = dict(metadata)
        stored.update(self.tamper)
        self.objects[key] = (Path(source).read_bytes(), stored)
        if self.put_failures:
            raise self.put_failures.pop(0)
        if self.on_put is not None:
            self.on_put(key)

    def delete(self, key: str) -> None:
        self.calls.append(("delete", key))
        self.objects.pop(key, None)

    def seed(self, key: str, data: bytes, **metadata: str) -> None:
        """Place an object as a previous upload would have left it."""
        stored = {"sha256": sha256_hex(data), "file-size": str(len(data))}
        stored.update(metadata)
        self.objects[key] = (data, stored)

    def count(self, op: str) -> int:
        return sum(1 for name, _ in self.calls if name == op)


@pytest.fixture
def store() -> FakeObjectStore:
    return FakeObjectStore()


@pytest.fixture
def firmware(tmp_path: Path) -> Path:
    """A 2 MiB firmware image."""
    path = tmp_path / "build" / "px4_fmu-v6c_default.px4"
    path.parent.mkdir()
    path.write_bytes(bytes(range(256)) * 8192)
    return path


# ---------------------------------------------------------------------------
# Throwaway git repositories
# ---------------------------------------------------------------------------


class GitRepoBuilder:
    """Builds a scratch repository commit by commit."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._counter = 0
        path.mkdir(parents=True, exist_ok=True)
        self.git("init", "-q")
        self.git("symbolic-ref", "HEAD", "refs/heads/main")
        self.git("config", "user.name", "Release Bot")
        self.git("config", "user.email", "bot@example.test")
        self.git("config", "commit.gpgsign", "false")
        self.git("config", "tag.gpgsign", "false")

    def git(self, *args: str) -> str:
        result = subprocess.run(
            [GIT or "git", *args],
            cwd=self.path,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()

    def commit(self, subject: str, author: str = "Alice") -> str:
        self._counter += 1
        (self.path / f"change-{self._counter}.txt").write_text(subject + "\n")
        self.git("add", "-A")
        self.git(
            "commit",
            "-q",
            "-m",
            subject,
            f"--author={author} <{author.split()[0].lower()}@example.test>",
        )
        return self.head()

    def tag(self, name: str, ref: str = "HEAD") -> None:
        self.git("tag", name, ref)

    def head(self) -> str:
        return self.git("rev-parse", "HEAD")


@pytest.fixture
def make_repo(tmp_path: Path) -> Callable[..., GitRepoBuilder]:
    """Factory fixture: a fresh repository under ``tmp_path``."""
    if GIT is None:
        pytest.skip("git executable not available")

    def _factory(name: str = "repo") -> GitRepoBuilder:
        return GitRepoBuilder(tmp_path / name)

    return _factory
