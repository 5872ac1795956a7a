"""Data models for hfile file records, snapshots and API envelopes."""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .exceptions import HfileInvalidResponseError, HfileServerError


@dataclass(frozen=True)
class FileRecord:
    """The unit of comparison between a local and a remote tree."""

    path: str
    """Relative path using forward slashes (unique within a snapshot)"""

    fingerprint: str
    """Cheap content fingerprint (see sync.fingerprint)"""

    modified_at: int
    """Modification time in whole seconds, used as a tie-break only"""

    @classmethod
    def from_api_response(cls, data: Any) -> "FileRecord":
        """Decode one entry of a remote listing.

        Args:
            data: JSON object with ``path``, ``hash`` and ``mod_time`` keys

        Returns:
            FileRecord instance

        Raises:
            HfileInvalidResponseError: If a field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise HfileInvalidResponseError(
                f"Listing entry is not an object: {data!r}"
            )

        missing = [key for key in ("path", "hash", "mod_time") if key not in data]
        if missing:
            raise HfileInvalidResponseError(
                f"Listing entry missing field(s) {', '.join(missing)}: {data!r}"
            )

        path = data["path"]
        fingerprint = data["hash"]
        modified_at = data["mod_time"]

        if not isinstance(path, str) or not path:
            raise HfileInvalidResponseError(f"Invalid path in listing: {path!r}")
        if not isinstance(fingerprint, str):
            raise HfileInvalidResponseError(
                f"Invalid hash for {path}: {fingerprint!r}"
            )
        # bool is an int subclass; reject it explicitly
        if isinstance(modified_at, bool) or not isinstance(modified_at, int):
            raise HfileInvalidResponseError(
                f"Invalid mod_time for {path}: {modified_at!r}"
            )

        return cls(path=path, fingerprint=fingerprint, modified_at=modified_at)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the wire representation."""
        return {
            "path": self.path,
            "hash": self.fingerprint,
            "mod_time": self.modified_at,
        }


class RepositorySnapshot(Mapping[str, FileRecord]):
    """Immutable mapping of relative path to FileRecord.

    A snapshot is captured once (by the scanner or the remote fetcher) and
    never mutated afterwards. Iteration order carries no meaning.

    Examples:
        >>> snap = RepositorySnapshot([FileRecord("a.txt", "x", 100)])
        >>> "a.txt" in snap
        True
    """

    def __init__(self, records: Iterable[FileRecord] = ()):
        entries: dict[str, FileRecord] = {}
        for record in records:
            if record.path in entries:
                raise ValueError(f"Duplicate path in snapshot: {record.path}")
            entries[record.path] = record
        self._records = entries

    def __getitem__(self, path: str) -> FileRecord:
        return self._records[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"RepositorySnapshot({len(self._records)} file(s))"


@dataclass
class TransferPlan:
    """Upload and download lists derived from two snapshots."""

    to_upload: list[FileRecord] = field(default_factory=list)
    to_download: list[FileRecord] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)
    """Paths with differing fingerprints and equal timestamps (never transferred)"""

    @property
    def is_empty(self) -> bool:
        """True if there is nothing to transfer in either direction."""
        return not self.to_upload and not self.to_download

    def to_dict(self) -> dict[str, Any]:
        """Convert plan to dictionary for JSON output."""
        return {
            "upload": [r.path for r in self.to_upload],
            "download": [r.path for r in self.to_download],
            "conflicts": list(self.conflicts),
        }


@dataclass
class ApiEnvelope:
    """Generic response envelope returned by the hfile server."""

    ok: bool
    msg: Optional[str] = None
    error: Optional[str] = None
    code: Optional[int] = None
    data: Any = None
    raw: str = ""

    @classmethod
    def from_api_response(cls, payload: Any, raw: str = "") -> "ApiEnvelope":
        """Decode a parsed JSON body into an envelope.

        Raises:
            HfileInvalidResponseError: If the body is not an envelope
        """
        if not isinstance(payload, dict):
            raise HfileInvalidResponseError(
                f"Expected a JSON object from server, got: {raw or payload!r}"
            )
        ok = payload.get("ok")
        if not isinstance(ok, bool):
            raise HfileInvalidResponseError(
                f"Response envelope has no boolean 'ok' flag: {raw or payload!r}"
            )
        return cls(
            ok=ok,
            msg=payload.get("msg"),
            error=payload.get("error"),
            code=payload.get("code"),
            data=payload.get("data"),
            raw=raw,
        )

    @property
    def message(self) -> str:
        """Best available human-readable failure message."""
        return self.msg or self.error or self.raw or "unknown server error"

    def raise_for_failure(
        self, context: str, error_class: type[HfileServerError] = HfileServerError
    ) -> None:
        """Raise error_class if the envelope signals failure.

        Args:
            context: Short description of the operation, used as message prefix
            error_class: HfileServerError subclass to raise
        """
        if self.ok:
            return
        details = self.data if isinstance(self.data, list) else None
        raise error_class(
            f"{context}: {self.message}", body=self.raw, details=details
        )


@dataclass(frozen=True)
class ListingOk:
    """Successful remote listing."""

    records: list[FileRecord]


@dataclass(frozen=True)
class ListingErr:
    """Remote listing rejected by the server."""

    message: str


ListingResult = Union[ListingOk, ListingErr]


def decode_listing(envelope: ApiEnvelope) -> ListingResult:
    """Decode a ``/file/list`` envelope into a discriminated result.

    Every entry is validated; an entry missing a required field fails the
    whole listing instead of being skipped.

    Args:
        envelope: Decoded response envelope

    Returns:
        ListingOk with the records, or ListingErr with the server message

    Raises:
        HfileInvalidResponseError: If data is not a list or an entry is malformed
    """
    if not envelope.ok:
        return ListingErr(message=envelope.message)

    if envelope.data is None:
        return ListingOk(records=[])
    if not isinstance(envelope.data, list):
        raise HfileInvalidResponseError(
            f"Listing data is not a list: {type(envelope.data).__name__}"
        )

    return ListingOk(
        records=[FileRecord.from_api_response(item) for item in envelope.data]
    )


@dataclass(frozen=True)
class AuthTokens:
    """Tokens returned by a successful login."""

    token: str
    refresh_token: str = ""

    @classmethod
    def from_api_response(cls, data: Any) -> "AuthTokens":
        """Decode the ``data`` member of a login envelope."""
        if not isinstance(data, dict):
            raise HfileInvalidResponseError("Login response has no data object")
        token = data.get("token")
        if not isinstance(token, str) or not token:
            raise HfileInvalidResponseError("Login response does not contain a token")
        refresh_token = data.get("refresh_token") or ""
        if not isinstance(refresh_token, str):
            raise HfileInvalidResponseError("Login response has invalid refresh_token")
        return cls(token=token, refresh_token=refresh_token)


@dataclass(frozen=True)
class ChunkedUploadSession:
    """Client-side view of a server-tracked chunked upload.

    Only the opaque upload id is shared with the server. The session lives
    for one upload call and is not persisted; an interrupted upload has to
    start again from part 0 with a new session.
    """

    upload_id: str
    file_size: int
    chunk_size: int
    total_parts: int

    def part_range(self, part_index: int) -> tuple[int, int]:
        """Return the [start, end) byte range of a zero-based part."""
        if not 0 <= part_index < self.total_parts:
            raise IndexError(f"Part index {part_index} out of range")
        start = part_index * self.chunk_size
        end = min(start + self.chunk_size, self.file_size)
        return start, end
