"""ATT&CK bundle acquisition with a local file cache.

The cache is a single file named after the matrix. It is not keyed by bundle
version, so a stale copy is used until ``force_refresh`` is requested.
"""

import logging
from pathlib import Path
from typing import Optional, Union

import httpx

from ..config.loader import ENTERPRISE_BUNDLE_URL
from ..exceptions import BundleFetchError

logger = logging.getLogger(__name__)

CACHE_FILENAME = "enterprise-attack.json"


class BundleFetcher:
    """Return the enterprise-attack bundle from cache or from GitHub."""

    def __init__(
        self,
        cache_dir: Union[str, Path] = ".mitre-cache",
        url: str = ENTERPRISE_BUNDLE_URL,
        timeout: float = 60.0,
        http_client: Optional[httpx.Client] = None,
    ):
        """Initialize the fetcher.

        Args:
            cache_dir: Directory holding the cached bundle
            url: Bundle download URL
            timeout: HTTP timeout in seconds
            http_client: Optional pre-configured HTTP client for testing
        """
        self.cache_dir = Path(cache_dir)
        self.url = url
        self._timeout = timeout
        self._http_client = http_client

    @property
    def cache_path(self) -> Path:
        return self.cache_dir / CACHE_FILENAME

    def fetch(self, force_refresh: bool = False) -> bytes:
        """Return bundle bytes, downloading only when the cache is absent or bypassed.

        Raises:
            BundleFetchError: If the cache directory cannot be created or the download fails
        """
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BundleFetchError(f"cannot create cache directory {self.cache_dir}: {e}", source=str(self.cache_dir)) from e

        if not force_refresh and self.cache_path.exists():
            try:
                data = self.cache_path.read_bytes()
                logger.debug(f"Cached bundle found at {self.cache_path} ({len(data)} bytes)")
                return data
            except OSError as e:
                logger.warning(f"Cannot read cached bundle {self.cache_path}: {e}")

        logger.info(f"Downloading ATT&CK bundle from {self.url}")
        data = self._download()
        logger.debug(f"Downloaded bundle ({len(data)} bytes), caching")

        try:
            self.cache_path.write_bytes(data)
        except OSError as e:
            logger.warning(f"Failed to cache bundle at {self.cache_path}: {e}")

        return data

    def _download(self) -> bytes:
        if self._http_client:
            client = self._http_client
            should_close = False
        else:
            client = httpx.Client(timeout=self._timeout, follow_redirects=True)
            should_close = True

        try:
            response = client.get(self.url)
        except httpx.HTTPError as e:
            raise BundleFetchError(f"download bundle: {e}", source=self.url) from e
        finally:
            if should_close:
                client.close()

        if response.status_code != 200:
            raise BundleFetchError(f"bundle HTTP {response.status_code}", source=self.url)

        return response.content


def read_local(path: Union[str, Path]) -> bytes:
    """Read a bundle from an explicit local file, bypassing the cache."""
    path = Path(path)
    try:
        return path.read_bytes()
    except OSError as e:
        raise BundleFetchError(f"cannot read bundle file {path}: {e}", source=str(path)) from e
