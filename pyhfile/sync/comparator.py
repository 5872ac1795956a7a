"""File comparison logic for sync operations.

Reconciliation is a pure function of two snapshots. A path is transferred
towards the side that is missing it, or, when both sides have it with
different fingerprints, from the side with the strictly newer timestamp
(last writer wins). Equal timestamps with different fingerprints are a
conflict: neither plan includes the path.
"""

from collections.abc import Mapping

from ..models import FileRecord, TransferPlan


def _plan_one_way(
    source: Mapping[str, FileRecord], target: Mapping[str, FileRecord]
) -> list[FileRecord]:
    """Records of source that must be copied to target."""
    result = []
    for path, record in source.items():
        other = target.get(path)
        if other is None:
            result.append(record)
        elif (
            record.fingerprint != other.fingerprint
            and record.modified_at > other.modified_at
        ):
            result.append(record)
    result.sort(key=lambda r: r.path)
    return result


def plan_upload(
    local: Mapping[str, FileRecord], remote: Mapping[str, FileRecord]
) -> list[FileRecord]:
    """Local records that must be uploaded.

    A local path is included if the remote has no record for it, or if the
    fingerprints differ and the local timestamp is strictly newer.

    Examples:
        >>> local = {"a.txt": FileRecord("a.txt", "X", 100)}
        >>> remote = {"a.txt": FileRecord("a.txt", "Y", 50)}
        >>> [r.path for r in plan_upload(local, remote)]
        ['a.txt']
    """
    return _plan_one_way(local, remote)


def plan_download(
    local: Mapping[str, FileRecord], remote: Mapping[str, FileRecord]
) -> list[FileRecord]:
    """Remote records that must be downloaded (mirror of plan_upload)."""
    return _plan_one_way(remote, local)


def find_conflicts(
    local: Mapping[str, FileRecord], remote: Mapping[str, FileRecord]
) -> list[str]:
    """Paths whose fingerprints differ while their timestamps are equal."""
    return sorted(
        path
        for path, record in local.items()
        if path in remote
        and record.fingerprint != remote[path].fingerprint
        and record.modified_at == remote[path].modified_at
    )


class FileComparator:
    """Compares local and remote snapshots to build a transfer plan."""

    def build_plan(
        self,
        local: Mapping[str, FileRecord],
        remote: Mapping[str, FileRecord],
    ) -> TransferPlan:
        """Compute uploads, downloads and unresolved conflicts.

        Args:
            local: Local snapshot
            remote: Remote snapshot

        Returns:
            TransferPlan with disjoint upload and download lists
        """
        return TransferPlan(
            to_upload=plan_upload(local, remote),
            to_download=plan_download(local, remote),
            conflicts=find_conflicts(local, remote),
        )
