"""
Remote datalog fetching and CSV export.

Shared bootmod3 log links (https://bootmod3.net/log?id=...) are rewritten to
their download form (/dlog) before fetching.
"""

from pathlib import Path
from typing import Optional, Sequence
from urllib.parse import urlsplit, urlunsplit

import requests

from logdash.data.parser import IngestionError, TabularPayload, parse_csv_text
from logdash.utils import debug_log

EXPORT_FILE_NAME = 'bootmod3_log.csv'
EXPORT_MIME_TYPE = 'text/csv'

STATE_IDLE = 'idle'
STATE_LOADING = 'loading'
STATE_SUCCESS = 'success'
STATE_ERROR = 'error'


class RemoteFetchError(IngestionError):
    """Raised when a remote log cannot be fetched."""


def rewrite_log_url(url: str) -> str:
    """
    Turn a shared log link into its download URL.

    Args:
        url: URL as entered by the user

    Returns:
        URL to fetch

    Raises:
        RemoteFetchError: If the URL is not http(s)
    """
    parts = urlsplit(url.strip())
    if parts.scheme not in ('http', 'https') or not parts.netloc:
        raise RemoteFetchError(f"Invalid URL: {url}")

    if parts.path == '/log':
        parts = parts._replace(path='/dlog')
    return urlunsplit(parts)


def _host_allowed(host: str, allowed_hosts: Sequence[str]) -> bool:
    if not allowed_hosts:
        return True
    host = host.lower()
    return any(host == allowed or host.endswith('.' + allowed) for allowed in allowed_hosts)


class RemoteLogFetcher:
    """Fetches CSV logs over HTTP and tracks the request state."""

    def __init__(self, allowed_hosts: Optional[Sequence[str]] = None, timeout: float = 30.0,
                 session: Optional[requests.Session] = None):
        self.allowed_hosts = list(allowed_hosts or [])
        self.timeout = timeout
        self.session = session or requests.Session()
        self.state = STATE_IDLE
        self.last_error: Optional[str] = None
        self._last_url: Optional[str] = None
        self._last_payload: Optional[TabularPayload] = None

    def is_current(self, url: str) -> bool:
        """True if url is the last successfully completed request."""
        return self.state == STATE_SUCCESS and url == self._last_url

    def fetch(self, url: str) -> TabularPayload:
        """
        Fetch and parse a remote CSV log.

        The identical URL is served from the last result after a success.

        Args:
            url: Log URL

        Returns:
            Parsed TabularPayload

        Raises:
            RemoteFetchError: On a rejected URL or a failed request
            IngestionError: If the response is not a usable CSV
        """
        if self.is_current(url):
            return self._last_payload

        self.state = STATE_LOADING
        self.last_error = None
        debug_log.info(f"Fetching remote log: {url}")

        try:
            fetch_url = rewrite_log_url(url)
            host = urlsplit(fetch_url).hostname or ''
            if not _host_allowed(host, self.allowed_hosts):
                raise RemoteFetchError(
                    f"Invalid domain '{host}'. Allowed: {', '.join(self.allowed_hosts)}")

            try:
                response = self.session.get(fetch_url, timeout=self.timeout)
                response.raise_for_status()
            except requests.RequestException as e:
                raise RemoteFetchError(f"Failed to fetch {fetch_url}: {e}") from e

            payload = parse_csv_text(response.text, url)
        except IngestionError as e:
            self.state = STATE_ERROR
            self.last_error = str(e)
            debug_log.error(f"Remote fetch failed: {e}")
            raise

        self.state = STATE_SUCCESS
        self._last_url = url
        self._last_payload = payload
        return payload


def export_csv(payload: TabularPayload, directory: str, file_name: str = EXPORT_FILE_NAME) -> Path:
    """
    Write a payload as CSV.

    Args:
        payload: Table to export
        directory: Target directory (created if missing)
        file_name: Output file name

    Returns:
        Path of the written file
    """
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / file_name
    path.write_text(payload.to_csv_text(), encoding='utf-8')
    debug_log.info(f"Exported {payload.source_name} to {path}")
    return path
