"""Remote tree fetching for sync operations."""

import logging

from ..api import HfileClient
from ..exceptions import HfileInvalidResponseError, HfileServerError
from ..models import ListingErr, RepositorySnapshot

logger = logging.getLogger(__name__)


def fetch_remote(client: HfileClient, repo: str) -> RepositorySnapshot:
    """Fetch the remote snapshot of a repository.

    Args:
        client: Authenticated hfile client
        repo: Repository name

    Returns:
        Snapshot of the remote file listing

    Raises:
        HfileAuthenticationError: If the token is rejected
        HfileNetworkError: On transport failure
        HfileInvalidResponseError: If the listing is malformed
        HfileServerError: If the server rejects the listing request
    """
    result = client.list_files(repo)
    if isinstance(result, ListingErr):
        raise HfileServerError(
            f"Listing of repository '{repo}' rejected: {result.message}"
        )

    try:
        snapshot = RepositorySnapshot(result.records)
    except ValueError as e:
        raise HfileInvalidResponseError(f"Invalid remote listing: {e}") from e

    logger.debug("Fetched %d remote file(s) for repo %s", len(snapshot), repo)
    return snapshot
