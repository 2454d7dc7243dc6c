"""Tests for VersionCounter - end to end over real and synthetic histories."""

import subprocess

import pytest

from path_versions.config import HistoryConfig
from path_versions.services.history.errors import RepositoryCorrupt, RepositoryNotFound
from path_versions.services.history.git_repository import GitRepository
from path_versions.services.history.version_counter import (
    VersionCounter,
    count_versions,
)


class TestVersionCounterSynthetic:
    """Counting over in-memory commit graphs."""

    def test_merge_of_carried_versions_does_not_double_count(self, fake_repo):
        root = fake_repo.commit({"a.txt": "1", "b.txt": "1"})
        left = fake_repo.commit({"a.txt": "2", "b.txt": "1"}, parents=[root])
        right = fake_repo.commit({"a.txt": "1", "b.txt": "2"}, parents=[root])
        fake_repo.commit({"a.txt": "2", "b.txt": "2"}, parents=[left, right])

        counter = VersionCounter(fake_repo)
        table = counter.count()

        assert table.as_dict() == {"a.txt": 2, "b.txt": 2}
        assert counter.stats.commits == 4
        assert counter.stats.merge_commits == 1
        assert counter.stats.root_commits == 1

    def test_rename_on_branch_folds_history(self, fake_repo):
        root = fake_repo.commit({"a.txt": "1"})
        edit = fake_repo.commit({"a.txt": "2"}, parents=[root])
        fake_repo.commit({"b.txt": "2"}, parents=[edit])

        table = VersionCounter(fake_repo).count()

        assert table.as_dict() == {"b.txt": 2}

    def test_table_is_finalized(self, fake_repo):
        fake_repo.commit({"a.txt": "1"})

        table = VersionCounter(fake_repo).count()

        assert table.finalized

    def test_empty_history_gives_empty_table(self, fake_repo):
        table = VersionCounter(fake_repo).count()

        assert len(table) == 0

    def test_missing_tree_is_fatal(self, fake_repo):
        root = fake_repo.commit({"a.txt": "1"})
        del fake_repo.trees[fake_repo.commits[root].tree]

        with pytest.raises(RepositoryCorrupt):
            VersionCounter(fake_repo).count()


class TestVersionCounterGit:
    """Counting over real git repositories."""

    def test_modify_then_rename_scenario(self, git_repo):
        git_repo.write("a.txt", "alpha\n")
        git_repo.write("b.txt", "bravo\n")
        git_repo.commit("Initial")
        git_repo.write("a.txt", "alpha v2\n")
        git_repo.commit("Modify a")
        git_repo.move("b.txt", "c.txt")
        git_repo.commit("Rename b to c")

        table = count_versions(git_repo.path)

        assert table.as_dict() == {"a.txt": 2, "c.txt": 1}

    def test_revert_to_earlier_content_does_not_grow_count(self, git_repo):
        git_repo.write("a.txt", "one\n")
        git_repo.commit("v1")
        git_repo.write("a.txt", "two\n")
        git_repo.commit("v2")
        git_repo.write("a.txt", "one\n")
        git_repo.commit("Revert to v1")

        table = count_versions(git_repo.path)

        assert table.count("a.txt") == 2

    def test_rename_chain_reports_only_final_name(self, git_repo):
        git_repo.write("a.txt", "x\n")
        git_repo.commit("Add a")
        git_repo.write("a.txt", "y\n")
        git_repo.commit("Edit a")
        git_repo.move("a.txt", "b.txt")
        git_repo.commit("a -> b")
        git_repo.write("b.txt", "z\n")
        git_repo.commit("Edit b")
        git_repo.move("b.txt", "c.txt")
        git_repo.commit("b -> c")

        table = count_versions(git_repo.path)

        assert table.as_dict() == {"c.txt": 3}

    def test_deleted_paths_are_reported(self, git_repo):
        git_repo.write("keep.txt", "k\n")
        git_repo.write("dir/gone.txt", "g1\n")
        git_repo.commit("Add")
        git_repo.write("dir/gone.txt", "g2\n")
        git_repo.commit("Edit")
        git_repo.remove("dir/gone.txt")
        git_repo.commit("Delete")

        table = count_versions(git_repo.path)

        assert table.as_dict() == {"keep.txt": 1, "dir/gone.txt": 2}

    def test_clean_merge_does_not_add_versions(self, git_repo):
        git_repo.write("a.txt", "a1\n")
        git_repo.write("b.txt", "b1\n")
        git_repo.commit("Initial")
        git_repo.branch("feature")
        git_repo.write("a.txt", "a2\n")
        git_repo.commit("Feature edits a")
        git_repo.checkout("main")
        git_repo.write("b.txt", "b2\n")
        git_repo.commit("Main edits b")
        result = git_repo.merge("feature")
        assert result.returncode == 0

        repository = GitRepository.discover(git_repo.path)
        counter = VersionCounter(repository)
        table = counter.count()

        assert table.as_dict() == {"a.txt": 2, "b.txt": 2}
        assert counter.stats.merge_commits == 1
        assert counter.stats.commits == 4

    def test_conflict_resolution_counts_as_new_version(self, git_repo):
        git_repo.write("a.txt", "base\n")
        git_repo.commit("Initial")
        git_repo.branch("feature")
        git_repo.write("a.txt", "feature\n")
        git_repo.commit("Feature")
        git_repo.checkout("main")
        git_repo.write("a.txt", "main\n")
        git_repo.commit("Main")
        result = git_repo.merge("feature")
        assert result.returncode != 0
        git_repo.write("a.txt", "resolved\n")
        git_repo.commit("Merge feature")

        table = count_versions(git_repo.path)

        assert table.count("a.txt") == 4

    def test_counting_twice_is_idempotent(self, git_repo):
        git_repo.write("a.txt", "1\n")
        git_repo.write("src/b.py", "print(1)\n")
        git_repo.commit("Initial")
        git_repo.write("src/b.py", "print(2)\n")
        git_repo.move("a.txt", "docs/a.txt")
        git_repo.commit("Move and edit")

        first = count_versions(git_repo.path).counts()
        second = count_versions(git_repo.path).counts()

        assert first == second
        assert first == [(1, "docs/a.txt"), (2, "src/b.py")]

    def test_similarity_mode_follows_edited_rename(self, git_repo):
        body = "".join(f"line {i}\n" for i in range(30))
        git_repo.write("old.py", body)
        git_repo.commit("Add")
        git_repo.move("old.py", "new.py")
        git_repo.write("new.py", body + "extra\n")
        git_repo.commit("Move and edit")

        exact = count_versions(git_repo.path)
        similar = count_versions(
            git_repo.path, HistoryConfig(rename_detection="similarity")
        )

        assert exact.as_dict() == {"old.py": 1, "new.py": 1}
        assert similar.as_dict() == {"new.py": 2}

    def test_empty_repository_counts_nothing(self, git_repo):
        table = count_versions(git_repo.path)

        assert len(table) == 0

    def test_not_a_repository_raises(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))
        plain = tmp_path / "plain"
        plain.mkdir()

        with pytest.raises(RepositoryNotFound):
            count_versions(plain)

    def test_missing_head_commit_is_not_an_empty_history(self, git_repo):
        git_repo.write("a.txt", "1\n")
        head = git_repo.commit("Initial")
        (git_repo.path / ".git" / "objects" / head[:2] / head[2:]).unlink()

        with pytest.raises(RepositoryCorrupt) as exc_info:
            count_versions(git_repo.path)

        assert exc_info.value.object_id == head

    def test_shallow_clone_boundary_is_treated_as_root(self, git_repo, tmp_path):
        for version in ("1", "2", "3"):
            git_repo.write("a.txt", f"{version}\n")
            git_repo.commit(f"Version {version}")
        clone = tmp_path / "shallow_clone"
        subprocess.run(
            ["git", "clone", "-q", "--depth", "2", f"file://{git_repo.path}", str(clone)],
            check=True,
            capture_output=True,
        )
        assert (clone / ".git" / "shallow").exists()

        assert count_versions(clone).as_dict() == {"a.txt": 2}
