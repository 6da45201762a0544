"""Asset storage service for cutouts, masks, and composited videos."""

import hashlib
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

import httpx

from media_engine.config import settings
from media_engine.errors import ProviderError
from media_engine.logging import get_logger

logger = get_logger(__name__)


@dataclass
class StoredAsset:
    """Metadata for a stored asset."""

    key: str  # Path relative to the storage root, e.g. "cutouts/ab12....png"
    file_path: Path
    url: str
    file_size_bytes: int
    mime_type: str
    checksum: str


class StorageService:
    """Local object storage served under a public base URL.

    Keys are relative paths below ``base_path``. A key maps to exactly one
    public URL, so writing the same key twice yields the same reference.
    """

    SUBDIRS = ("cutouts", "masks", "fallback", "thumbnails", "temp")

    MIME_TYPES = {
        ".png": "image/png",
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".webp": "image/webp",
        ".mp4": "video/mp4",
    }

    def __init__(
        self,
        base_path: Path | None = None,
        public_url: str | None = None,
        create_dirs: bool = True,
    ) -> None:
        """Initialize storage service.

        Args:
            base_path: Base directory for local storage. Defaults to settings.storage_path
            public_url: Base URL that serves ``base_path``
            create_dirs: Whether to create directories if they don't exist
        """
        self.base_path = Path(base_path or settings.storage_path)
        self.public_url = (public_url or settings.storage_public_url).rstrip("/")

        if create_dirs:
            self._ensure_dirs()

    def _ensure_dirs(self) -> None:
        """Create storage directories."""
        for subdir in self.SUBDIRS:
            (self.base_path / subdir).mkdir(parents=True, exist_ok=True)

    @staticmethod
    def compute_checksum(data: bytes) -> str:
        """Compute SHA256 checksum of data."""
        return hashlib.sha256(data).hexdigest()

    def url_for(self, key: str) -> str:
        """Public URL for a storage key."""
        return f"{self.public_url}/{key}"

    def path_for(self, key: str) -> Path:
        """Local file path for a storage key.

        Raises:
            ProviderError: If the key resolves outside the storage root
        """
        root = self.base_path.resolve()
        path = (root / key).resolve()
        if not path.is_relative_to(root):
            raise ProviderError("storage", f"key escapes storage root: {key[:100]}")
        return path

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def _key_from_url(self, url: str) -> str | None:
        """Storage key for a URL served by this storage, if it is one."""
        prefix = f"{self.public_url}/"
        if url.startswith(prefix):
            return url[len(prefix) :]
        return None

    def local_path(self, url: str) -> Path | None:
        """Local file behind a URL served by this storage, if it is one."""
        key = self._key_from_url(url)
        if key is None:
            return None
        return self.path_for(unquote(key))

    def is_fetchable(self, url: str) -> bool:
        """Whether ``url`` is an http(s) URL or a file inside this storage."""
        if self._key_from_url(url) is not None:
            try:
                self.local_path(url)
            except ProviderError:
                return False
            return True
        parsed = urlparse(url)
        return parsed.scheme in ("http", "https") and bool(parsed.netloc)

    async def fetch_bytes(self, url: str, timeout: float = 60.0) -> bytes:
        """Read an asset by URL.

        URLs served by this storage are read from disk, other http(s) URLs are
        downloaded. Paths, ``file://`` URLs and storage keys that leave the
        storage root are refused.

        Raises:
            ProviderError: If the asset cannot be read
        """
        path = self.local_path(url)
        if path is None and not self.is_fetchable(url):
            raise ProviderError("storage", f"unsupported asset URL: {url[:100]}")
        if path is not None:
            try:
                return path.read_bytes()
            except OSError as e:
                raise ProviderError("storage", f"cannot read {path}: {e}") from e

        try:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                response = await client.get(url)
                response.raise_for_status()
                return response.content
        except httpx.HTTPError as e:
            logger.error("storage_download_failed", url=url[:100], error=str(e))
            raise ProviderError("storage", f"download failed: {e}") from e

    async def store_bytes(self, data: bytes, key: str) -> StoredAsset:
        """Store raw bytes under a key.

        Args:
            data: Raw bytes to store
            key: Relative storage key, including extension

        Returns:
            StoredAsset with file information
        """
        file_path = self.path_for(key)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_bytes(data)

        logger.debug("storage_write_completed", key=key, file_size=len(data))

        return StoredAsset(
            key=key,
            file_path=file_path,
            url=self.url_for(key),
            file_size_bytes=len(data),
            mime_type=self._guess_mime_type(key),
            checksum=self.compute_checksum(data),
        )

    async def store_file(self, source: Path, key: str) -> StoredAsset:
        """Copy a local file into storage under a key."""
        return await self.store_bytes(source.read_bytes(), key)

    def _guess_mime_type(self, key: str) -> str:
        """Guess MIME type from the key's extension."""
        return self.MIME_TYPES.get(Path(key).suffix.lower(), "application/octet-stream")
