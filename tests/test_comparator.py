"""Tests for snapshot reconciliation."""

import itertools

from pyhfile.models import FileRecord, RepositorySnapshot
from pyhfile.sync.comparator import (
    FileComparator,
    find_conflicts,
    plan_download,
    plan_upload,
)


def _snap(*records: FileRecord) -> RepositorySnapshot:
    return RepositorySnapshot(records)


def _paths(records: list[FileRecord]) -> list[str]:
    return [r.path for r in records]


class TestPlanUpload:
    """Tests for plan_upload."""

    def test_local_only_and_newer(self):
        """Local-only files and strictly newer changed files are uploaded."""
        local = _snap(
            FileRecord("a.txt", "X", 100),
            FileRecord("b.txt", "Y", 200),
        )
        remote = _snap(
            FileRecord("a.txt", "X", 50),
            FileRecord("b.txt", "Z", 150),
            FileRecord("c.txt", "W", 300),
        )

        assert _paths(plan_upload(local, remote)) == ["b.txt"]
        assert _paths(plan_download(local, remote)) == ["c.txt"]

    def test_newer_local_edit(self):
        local = _snap(FileRecord("a.txt", "X", 100))
        remote = _snap(FileRecord("a.txt", "Y", 50))

        assert _paths(plan_upload(local, remote)) == ["a.txt"]
        assert plan_download(local, remote) == []

    def test_remote_only_file(self):
        remote = _snap(FileRecord("b.txt", "Z", 1))

        assert plan_upload(_snap(), remote) == []
        assert _paths(plan_download(_snap(), remote)) == ["b.txt"]

    def test_identical_fingerprint_never_transferred(self):
        """Equal fingerprints mean no transfer regardless of timestamps."""
        local = _snap(FileRecord("a.txt", "X", 999))
        remote = _snap(FileRecord("a.txt", "X", 1))

        assert plan_upload(local, remote) == []
        assert plan_download(local, remote) == []

    def test_new_local_file(self):
        local = _snap(FileRecord("new.txt", "N", 10))

        assert _paths(plan_upload(local, _snap())) == ["new.txt"]
        assert plan_download(local, _snap()) == []

    def test_older_local_not_uploaded(self):
        """An older local copy is downloaded, not uploaded."""
        local = _snap(FileRecord("a.txt", "OLD", 100))
        remote = _snap(FileRecord("a.txt", "NEW", 200))

        assert plan_upload(local, remote) == []
        assert _paths(plan_download(local, remote)) == ["a.txt"]

    def test_result_sorted_by_path(self):
        local = _snap(
            FileRecord("z.txt", "1", 1),
            FileRecord("a/b.txt", "2", 1),
            FileRecord("m.txt", "3", 1),
        )

        assert _paths(plan_upload(local, _snap())) == ["a/b.txt", "m.txt", "z.txt"]


class TestConflicts:
    """Tests for equal-timestamp conflicts."""

    def test_tie_is_not_transferred(self):
        """Differing fingerprints with equal timestamps go to neither plan."""
        local = _snap(FileRecord("a.txt", "X", 100))
        remote = _snap(FileRecord("a.txt", "Y", 100))

        assert plan_upload(local, remote) == []
        assert plan_download(local, remote) == []
        assert find_conflicts(local, remote) == ["a.txt"]

    def test_no_conflict_when_identical(self):
        local = _snap(FileRecord("a.txt", "X", 100))
        remote = _snap(FileRecord("a.txt", "X", 100))

        assert find_conflicts(local, remote) == []


class TestFileComparator:
    """Tests for FileComparator.build_plan."""

    def test_build_plan(self):
        local = _snap(
            FileRecord("up.txt", "L", 200),
            FileRecord("tie.txt", "L", 100),
            FileRecord("same.txt", "S", 100),
        )
        remote = _snap(
            FileRecord("up.txt", "R", 100),
            FileRecord("tie.txt", "R", 100),
            FileRecord("same.txt", "S", 50),
            FileRecord("down.txt", "D", 10),
        )

        plan = FileComparator().build_plan(local, remote)

        assert _paths(plan.to_upload) == ["up.txt"]
        assert _paths(plan.to_download) == ["down.txt"]
        assert plan.conflicts == ["tie.txt"]
        assert not plan.is_empty

    def test_empty_plan(self):
        plan = FileComparator().build_plan(_snap(), _snap())

        assert plan.is_empty
        assert plan.to_dict() == {"upload": [], "download": [], "conflicts": []}


class TestReconciliationProperties:
    """Exhaustive checks over small snapshot combinations."""

    # Each side: absent, or present with one of two fingerprints and times
    STATES = [None] + [
        (fp, mtime) for fp, mtime in itertools.product("XY", (100, 200))
    ]

    def _cases(self):
        for local_state, remote_state in itertools.product(self.STATES, repeat=2):
            local = (
                _snap(FileRecord("f", *local_state)) if local_state else _snap()
            )
            remote = (
                _snap(FileRecord("f", *remote_state)) if remote_state else _snap()
            )
            yield local, remote

    def test_symmetry(self):
        """Swapping the sides swaps the plans."""
        for local, remote in self._cases():
            assert plan_upload(local, remote) == plan_download(remote, local)
            assert plan_download(local, remote) == plan_upload(remote, local)

    def test_plans_are_disjoint(self):
        """No path is both uploaded and downloaded."""
        for local, remote in self._cases():
            uploads = set(_paths(plan_upload(local, remote)))
            downloads = set(_paths(plan_download(local, remote)))
            assert not uploads & downloads

    def test_completeness(self):
        """Every differing path is transferred or reported as a conflict."""
        for local, remote in self._cases():
            plan = FileComparator().build_plan(local, remote)
            handled = (
                set(_paths(plan.to_upload))
                | set(_paths(plan.to_download))
                | set(plan.conflicts)
            )
            for path in set(local) | set(remote):
                differs = (
                    path not in local
                    or path not in remote
                    or local[path].fingerprint != remote[path].fingerprint
                )
                assert (path in handled) == differs
