"""Download of the demo server-log archive."""

import logging

import requests

from ..config import DEMO_DATASET_URL
from ..errors import DemoFetchError

logger = logging.getLogger(__name__)

DEMO_FILE_NAME = 'server_logs.zip'


def fetch_demo_dataset(url: str = DEMO_DATASET_URL, timeout: float = 30) -> bytes:
    """
    Fetch the demo archive.

    The bytes are handed to the normal ingest path as if they were an
    upload named server_logs.zip.

    Raises:
        DemoFetchError: network failure or non-2xx response
    """
    logger.info("Fetching demo dataset from %s", url)
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as e:
        raise DemoFetchError(f"Failed to fetch demo dataset: {e}") from e

    if not response.ok:
        raise DemoFetchError(
            f"Failed to fetch demo dataset: {response.status_code} {response.reason}"
        )

    logger.debug("Demo dataset downloaded (%d bytes)", len(response.content))
    return response.content
