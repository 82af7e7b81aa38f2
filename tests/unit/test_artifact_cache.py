import os
from pathlib import Path

import pytest

from benchguard.artifacts import CURRENT_LABEL, ArtifactCache, sanitize_label
from benchguard.exceptions import ArtifactWriteError


@pytest.fixture
def built_binary(tmp_path: Path) -> Path:
    binary = tmp_path / "target" / "release" / "mako"
    binary.parent.mkdir(parents=True)
    binary.write_bytes(b"\x7fELF fake binary")
    binary.chmod(0o755)
    return binary


class TestPathFor:
    def test_baseline_paths(self, tmp_path: Path) -> None:
        cache = ArtifactCache(tmp_path / "tmp", "mako")
        assert cache.path_for("master") == tmp_path / "tmp" / "mako-master"
        assert cache.path_for("v1.2") == tmp_path / "tmp" / "mako-v1.2"

    def test_current_never_collides_with_a_ref(self, tmp_path: Path) -> None:
        cache = ArtifactCache(tmp_path, "mako")
        assert cache.path_for(CURRENT_LABEL) == tmp_path / "mako@current"
        assert cache.path_for(CURRENT_LABEL) != cache.path_for("refs/heads/current")

    def test_mapping_is_deterministic(self, tmp_path: Path) -> None:
        assert ArtifactCache(tmp_path, "mako").path_for("feature/x") == ArtifactCache(
            tmp_path, "mako"
        ).path_for("feature/x")

    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("master", "master"),
            ("feature/split-chunks", "feature-split-chunks"),
            ("v1.2.3", "v1.2.3"),
            ("HEAD~3", "HEAD-3"),
            ("../../etc", "-..-etc"),
            ("..", "-"),
        ],
    )
    def test_sanitize_label(self, label: str, expected: str) -> None:
        assert sanitize_label(label) == expected
        assert "/" not in sanitize_label(label)


class TestStore:
    def test_exists_is_false_until_stored(self, tmp_path: Path, built_binary: Path) -> None:
        cache = ArtifactCache(tmp_path / "tmp", "mako")
        assert cache.exists("v1.2") is False
        assert cache.record("v1.2").exists is False

        stored = cache.store("v1.2", built_binary)

        assert stored == cache.path_for("v1.2")
        assert cache.exists("v1.2") is True
        assert stored.read_bytes() == built_binary.read_bytes()
        assert os.access(stored, os.X_OK)

    def test_store_overwrites_previous_artifact(self, tmp_path: Path, built_binary: Path) -> None:
        cache = ArtifactCache(tmp_path, "mako")
        cache.store("master", built_binary)
        built_binary.write_bytes(b"newer build")

        cache.store("master", built_binary)

        assert cache.path_for("master").read_bytes() == b"newer build"
        assert not list(tmp_path.glob(".*.partial"))

    def test_missing_source_raises(self, tmp_path: Path) -> None:
        cache = ArtifactCache(tmp_path / "tmp", "mako")

        with pytest.raises(ArtifactWriteError) as exc_info:
            cache.store("v1.2", tmp_path / "does-not-exist")

        assert exc_info.value.label == "v1.2"
        assert cache.exists("v1.2") is False

    def test_unwritable_directory_raises(self, tmp_path: Path, built_binary: Path) -> None:
        blocker = tmp_path / "tmp"
        blocker.write_text("a file where the directory should be", encoding="utf-8")
        cache = ArtifactCache(blocker, "mako")

        with pytest.raises(ArtifactWriteError, match="Cannot store artifact"):
            cache.store("master", built_binary)

    def test_directory_at_artifact_path_is_not_an_artifact(self, tmp_path: Path) -> None:
        cache = ArtifactCache(tmp_path, "mako")
        cache.path_for("master").mkdir()
        assert cache.exists("master") is False
