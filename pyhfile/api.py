"""API client for the hfile server."""

from __future__ import annotations

import logging
import math
import random
import time
from pathlib import Path
from typing import Any, Callable

import httpx

from .exceptions import (
    HfileAPIError,
    HfileAuthenticationError,
    HfileConfigError,
    HfileDownloadError,
    HfileInvalidResponseError,
    HfileNetworkError,
    HfileServerError,
    HfileUploadError,
)
from .models import (
    ApiEnvelope,
    AuthTokens,
    ChunkedUploadSession,
    ListingResult,
    decode_listing,
)
from .utils import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY,
    DEFAULT_SERVER_URL,
    DOWNLOAD_BUFFER_SIZE,
    SINGLE_UPLOAD_LIMIT,
    format_size,
)

logger = logging.getLogger(__name__)

REGISTER_PATH = "/api/v1/register"
LOGIN_PATH = "/api/v1/login"

ProgressCallback = Callable[[int, int], None]


class HfileClient:
    """Client for interacting with the hfile server API."""

    def __init__(
        self,
        server_url: str | None = None,
        token: str | None = None,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY,
        timeout: float = 60.0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        single_upload_limit: int = SINGLE_UPLOAD_LIMIT,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize hfile API client.

        Args:
            server_url: Base URL of the server (default: built-in default)
            token: Bearer token; required for every call except login/register
            max_retries: Retry attempts for idempotent listing requests
            retry_delay: Initial delay between retries in seconds
            timeout: Request timeout in seconds
            chunk_size: Part size for chunked uploads in bytes
            single_upload_limit: Largest file size sent in a single request
            transport: Optional httpx transport (used by tests)
        """
        self.server_url = (server_url or DEFAULT_SERVER_URL).rstrip("/")
        self.token = token
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.single_upload_limit = single_upload_limit
        self._transport = transport
        self._client: httpx.Client | None = None

    def __enter__(self) -> HfileClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def _url(self, endpoint: str) -> str:
        return f"{self.server_url}/{endpoint.lstrip('/')}"

    def _auth_headers(self) -> dict[str, str]:
        if not self.token:
            raise HfileConfigError(
                "No token configured. Run 'hfile login <user> <password>' first."
            )
        return {"Authorization": f"Bearer {self.token}"}

    def _calculate_retry_delay(self, attempt: int) -> float:
        """Calculate delay before next retry using exponential backoff.

        Args:
            attempt: Current attempt number (0-based)

        Returns:
            Delay in seconds
        """
        base_delay = self.retry_delay * (2**attempt)
        # Add jitter: +/- 25% of base delay
        jitter = base_delay * 0.25 * (2 * random.random() - 1)
        return base_delay + jitter

    def _decode_response(
        self,
        response: httpx.Response,
        context: str,
        error_class: type[HfileServerError] = HfileServerError,
        check_ok: bool = True,
    ) -> ApiEnvelope:
        """Check HTTP status and decode the JSON envelope of a response.

        Args:
            response: httpx response
            context: Operation description used in error messages
            error_class: Error raised on non-success status or ok=false
            check_ok: Raise on an ok=false envelope (otherwise return it)

        Returns:
            Decoded envelope (ok=True unless check_ok is False)

        Raises:
            HfileAuthenticationError: On 401
            HfileServerError: On non-2xx status or an ok=false envelope
            HfileInvalidResponseError: If the body is not a valid envelope
        """
        body = response.text
        if response.status_code == 401:
            raise HfileAuthenticationError(
                "Token rejected by server (invalid or expired). "
                "Run 'hfile login' again."
            )
        if not response.is_success:
            raise error_class(
                f"{context} failed with status {response.status_code}: {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise HfileInvalidResponseError(
                f"{context}: invalid JSON response from server: {body[:200]}"
            ) from e

        envelope = ApiEnvelope.from_api_response(payload, raw=body)
        if check_ok:
            envelope.raise_for_failure(context, error_class)
        return envelope

    def _send(
        self,
        method: str,
        endpoint: str,
        authenticated: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send a single request, wrapping transport failures."""
        headers = dict(kwargs.pop("headers", None) or {})
        if authenticated:
            headers.update(self._auth_headers())
        try:
            return self._get_client().request(
                method, self._url(endpoint), headers=headers, **kwargs
            )
        except httpx.RequestError as e:
            raise HfileNetworkError(f"Network error: {e}") from e

    def _request(
        self,
        method: str,
        endpoint: str,
        context: str,
        authenticated: bool = True,
        retry: bool = False,
        error_class: type[HfileServerError] = HfileServerError,
        check_ok: bool = True,
        **kwargs: Any,
    ) -> ApiEnvelope:
        """Make an API request and decode its envelope.

        Args:
            method: HTTP method
            endpoint: API endpoint path
            context: Operation description used in error messages
            authenticated: Whether to send the bearer token
            retry: Retry network errors and 5xx responses (idempotent calls only)
            error_class: Error raised on rejection
            check_ok: Raise on an ok=false envelope
            **kwargs: Additional arguments passed to httpx

        Returns:
            Decoded envelope
        """
        attempts = max(self.max_retries, 0) + 1 if retry else 1
        last_exception: HfileAPIError | None = None

        for attempt in range(attempts):
            is_last_attempt = attempt == attempts - 1
            try:
                response = self._send(method, endpoint, authenticated, **kwargs)
                return self._decode_response(
                    response, context, error_class, check_ok=check_ok
                )
            except HfileNetworkError as e:
                if is_last_attempt:
                    raise
                last_exception = e
            except HfileServerError as e:
                status = e.status_code or 0
                if is_last_attempt or not 500 <= status < 600:
                    raise
                last_exception = e

            delay = self._calculate_retry_delay(attempt)
            logger.debug(
                "%s failed (attempt %d/%d), retrying in %.1fs: %s",
                context,
                attempt + 1,
                attempts,
                delay,
                last_exception,
            )
            time.sleep(delay)

        raise HfileAPIError(f"{context}: request failed after all retry attempts")

    # =========================
    # Authentication Operations
    # =========================

    @staticmethod
    def _credentials(username: str, password: str) -> dict[str, Any]:
        # The server accepts either an email or a username as identity
        key = "email" if "@" in username else "username"
        return {key: username, "password": password}

    def register(self, username: str, password: str) -> ApiEnvelope:
        """Register a new account.

        Args:
            username: Username or email address
            password: Account password

        Returns:
            Successful response envelope

        Raises:
            HfileServerError: If registration is rejected; field-level
                validation messages are available in ``details``
        """
        data = self._credentials(username, password)
        data["user_type"] = 1
        # 0 = no email verification
        data["verification_type"] = 0
        return self._request(
            "POST", REGISTER_PATH, "Registration", authenticated=False, json=data
        )

    def login(self, username: str, password: str) -> AuthTokens:
        """Log in and obtain access and refresh tokens.

        Args:
            username: Username or email address
            password: Account password

        Returns:
            AuthTokens with the issued tokens
        """
        envelope = self._request(
            "POST",
            LOGIN_PATH,
            "Login",
            authenticated=False,
            json=self._credentials(username, password),
        )
        tokens = AuthTokens.from_api_response(envelope.data)
        self.token = tokens.token
        return tokens

    # =========================
    # Listing Operations
    # =========================

    def list_files(self, repo: str) -> ListingResult:
        """Fetch the remote file listing of a repository.

        Args:
            repo: Repository name

        Returns:
            ListingOk with the file records, or ListingErr with the server
            message when the listing was rejected
        """
        envelope = self._request(
            "GET",
            "/file/list",
            "List files",
            params={"repo": repo},
            retry=True,
            check_ok=False,
        )
        return decode_listing(envelope)

    # =========================
    # Upload Operations
    # =========================

    def upload_file(
        self,
        repo: str,
        file_path: Path,
        remote_name: str,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        """Upload a file, choosing single-shot or chunked upload by size.

        Args:
            repo: Repository name
            file_path: Local path of the file
            remote_name: Relative path under which the file is stored
            progress_callback: Optional callback(bytes_uploaded, total_bytes)

        Raises:
            OSError: If the file cannot be read
            HfileUploadError: If the server rejects the upload
        """
        file_size = file_path.stat().st_size

        if file_size > self.single_upload_limit:
            self.upload_file_chunked(repo, file_path, remote_name, progress_callback)
            return

        logger.debug(
            "Uploading %s (%d bytes) in a single request", remote_name, file_size
        )
        with open(file_path, "rb") as f:
            self._request(
                "POST",
                "/file/upload",
                f"Upload of {remote_name}",
                error_class=HfileUploadError,
                params={"repo": repo},
                files={"file": (remote_name, f, "application/octet-stream")},
            )
        if progress_callback:
            progress_callback(file_size, file_size)

    def init_chunked_upload(
        self, repo: str, remote_name: str, file_size: int, mod_time: int
    ) -> ChunkedUploadSession:
        """Start a chunked upload session on the server.

        Returns:
            Session with the server-issued upload id
        """
        total_parts = math.ceil(file_size / self.chunk_size)
        envelope = self._request(
            "POST",
            "/file/upload/init",
            f"Init chunked upload of {remote_name}",
            error_class=HfileUploadError,
            params={"repo": repo},
            json={
                "repo": repo,
                "file_name": remote_name,
                "file_size": file_size,
                "total_parts": total_parts,
                "original_mod_time": mod_time,
            },
        )

        data = envelope.data
        upload_id = data.get("upload_id") if isinstance(data, dict) else None
        if not isinstance(upload_id, str) or not upload_id:
            raise HfileInvalidResponseError(
                f"upload_id not found in init response: {envelope.raw}"
            )

        return ChunkedUploadSession(
            upload_id=upload_id,
            file_size=file_size,
            chunk_size=self.chunk_size,
            total_parts=total_parts,
        )

    def upload_chunk(
        self,
        repo: str,
        session: ChunkedUploadSession,
        part_index: int,
        chunk: bytes,
        remote_name: str,
    ) -> None:
        """Upload one part of a chunked upload session."""
        self._request(
            "POST",
            "/file/upload/chunk",
            f"Chunk {part_index} of {remote_name}",
            error_class=HfileUploadError,
            params={"repo": repo},
            data={"upload_id": session.upload_id, "part_index": str(part_index)},
            files={"file": (remote_name, chunk, "application/octet-stream")},
        )

    def complete_chunked_upload(
        self, repo: str, session: ChunkedUploadSession, remote_name: str
    ) -> None:
        """Ask the server to merge the uploaded parts."""
        self._request(
            "POST",
            "/file/upload/complete",
            f"Complete chunked upload of {remote_name}",
            error_class=HfileUploadError,
            params={"repo": repo},
            json={"upload_id": session.upload_id},
        )

    def upload_file_chunked(
        self,
        repo: str,
        file_path: Path,
        remote_name: str,
        progress_callback: ProgressCallback | None = None,
    ) -> None:
        """Upload a large file as a sequence of chunks.

        The session is initialised, every part is sent in order, and the
        server is asked to merge the parts. The first failing call aborts
        the whole upload; nothing is retried and the session is not kept,
        so a later attempt starts again from part 0.

        Args:
            repo: Repository name
            file_path: Local path of the file
            remote_name: Relative path under which the file is stored
            progress_callback: Optional callback(bytes_uploaded, total_bytes)
        """
        with open(file_path, "rb") as f:
            stat = file_path.stat()
            file_size = stat.st_size
            session = self.init_chunked_upload(
                repo, remote_name, file_size, int(stat.st_mtime)
            )
            logger.debug(
                "Start chunked upload: file=%s, size=%s, parts=%d, upload_id=%s",
                remote_name,
                format_size(file_size),
                session.total_parts,
                session.upload_id,
            )

            for part_index in range(session.total_parts):
                start, end = session.part_range(part_index)
                f.seek(start)
                chunk = f.read(end - start)
                if len(chunk) != end - start:
                    raise OSError(
                        f"Short read on {file_path} part {part_index}: "
                        f"expected {end - start} bytes, got {len(chunk)}"
                    )

                self.upload_chunk(repo, session, part_index, chunk, remote_name)
                logger.debug(
                    "Chunk %d/%d of %s uploaded",
                    part_index + 1,
                    session.total_parts,
                    remote_name,
                )
                if progress_callback:
                    progress_callback(end, file_size)

        self.complete_chunked_upload(repo, session, remote_name)
        logger.debug("All chunks uploaded and merged for %s", remote_name)

    # =========================
    # Download Operations
    # =========================

    def download_file(
        self,
        repo: str,
        remote_path: str,
        output_path: Path,
        progress_callback: ProgressCallback | None = None,
    ) -> int:
        """Download a file, resuming from a partial local copy.

        The existing size of output_path is used as the start offset of a
        ranged request. A 416 answer means the file is already complete.
        No checksum is verified after a resumed download.

        Args:
            repo: Repository name
            remote_path: Relative path of the file in the repository
            output_path: Local destination
            progress_callback: Optional callback(bytes_downloaded, total_bytes)

        Returns:
            Number of bytes written (0 if already complete)

        Raises:
            OSError: If the destination cannot be written
            HfileDownloadError: If the server rejects the download
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)
        offset = output_path.stat().st_size if output_path.exists() else 0

        headers = self._auth_headers()
        if offset > 0:
            headers["Range"] = f"bytes={offset}-"

        try:
            with self._get_client().stream(
                "GET",
                self._url("/file/download"),
                params={"repo": repo, "file": remote_path},
                headers=headers,
            ) as response:
                if response.status_code == 416:
                    logger.debug("%s already fully downloaded", remote_path)
                    return 0
                if response.status_code == 401:
                    raise HfileAuthenticationError(
                        "Token rejected by server (invalid or expired). "
                        "Run 'hfile login' again."
                    )
                if not response.is_success:
                    response.read()
                    raise HfileDownloadError(
                        f"Download of {remote_path} failed with status "
                        f"{response.status_code}: {response.text}",
                        status_code=response.status_code,
                        body=response.text,
                    )

                if offset > 0 and response.status_code != 206:
                    # Server ignored the range and sent the whole file
                    logger.debug("Range ignored for %s, restarting", remote_path)
                    offset = 0

                content_length = int(response.headers.get("Content-Length", 0))
                total_size = offset + content_length
                written = 0
                mode = "ab" if offset > 0 else "wb"
                with open(output_path, mode) as f:
                    for chunk in response.iter_bytes(chunk_size=DOWNLOAD_BUFFER_SIZE):
                        if chunk:
                            f.write(chunk)
                            written += len(chunk)
                            if progress_callback:
                                progress_callback(offset + written, total_size)

                logger.debug(
                    "Downloaded %s: %d bytes from offset %d",
                    remote_path,
                    written,
                    offset,
                )
                return written

        except httpx.RequestError as e:
            raise HfileNetworkError(f"Network error during download: {e}") from e
