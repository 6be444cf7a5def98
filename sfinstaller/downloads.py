"""HTTP downloads of installer binaries over a TLS 1.2-or-newer channel."""

from __future__ import annotations

import logging
import ssl
from pathlib import Path

import requests
from requests.adapters import HTTPAdapter

from sfinstaller.errors import DownloadError, DownloadedFileMissingError

log = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class TLS12HttpAdapter(HTTPAdapter):
    """HTTPS adapter refusing protocol versions older than TLS 1.2."""

    def init_poolmanager(self, *args, **kwargs):
        context = ssl.create_default_context()
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        kwargs["ssl_context"] = context
        return super().init_poolmanager(*args, **kwargs)


def build_session() -> requests.Session:
    """Create a session whose HTTPS traffic requires TLS 1.2 or newer."""
    session = requests.Session()
    session.mount("https://", TLS12HttpAdapter())
    session.headers.update({"User-Agent": "sfinstaller"})
    return session


class Downloader:
    """Fetch files to disk, mapping transport errors onto ``DownloadError``."""

    def __init__(
        self,
        session: requests.Session | None = None,
        request_timeout: tuple[float, float] = (10.0, 300.0),
    ) -> None:
        self.session = session or build_session()
        self.request_timeout = request_timeout

    def download(self, url: str, destination: Path) -> Path:
        """
        Download ``url`` into ``destination``, replacing any existing file.

        Returns:
            Path: ``destination`` once it holds the downloaded payload.

        Raises:
            DownloadError: If the request or the write fails.
            DownloadedFileMissingError: If no non-empty file exists afterwards.
        """
        log.info(f"Downloading {url}")
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            with self.session.get(url, stream=True, timeout=self.request_timeout) as response:
                response.raise_for_status()
                with destination.open("wb") as handle:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            handle.write(chunk)
        except requests.RequestException as exc:
            raise DownloadError(f"Failed to download {url}: {exc}") from exc
        except OSError as exc:
            raise DownloadError(f"Failed to write {destination}: {exc}") from exc

        if not destination.is_file() or destination.stat().st_size == 0:
            raise DownloadedFileMissingError(f"Download of {url} did not produce {destination}")
        log.info(f"    Saved to {destination}")
        return destination
