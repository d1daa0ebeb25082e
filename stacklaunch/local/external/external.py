import sys
import logging
import requests
from pathlib import Path
from urllib.parse import urljoin
from stacklaunch.local.console import report

log = logging.getLogger(__name__)

REDIRECT_STATUS_CODES = (301, 302)


class ProvisionError(Exception):
    """Raised when an external binary could not be downloaded."""


class BinaryProvisioner:
    """
    Makes sure an external executable exists locally, downloading its release
    archive on demand.

    Archives are never extracted: the provisioner stages the download next to
    the expected executable and tells the user to extract it.
    """

    def __init__(self, name: str, url: str, timeout: float = 30, chunk_size: int = 8192, user_agent: str = "stacklaunch/1.0"):
        self.name = name
        self.url = url
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.headers = {"User-Agent": user_agent}

    def staging_path(self, path: Path) -> Path:
        """Returns where the release archive for `path` is downloaded to."""
        return Path(path).parent / self.url.rstrip("/").split("/")[-1]

    def ensure_binary(self, path: Path) -> None:
        """
        Ensures the executable at `path` exists. Idempotent.

        :param path: Expected location of the executable.
        :raises ProvisionError: If the directory cannot be created or the download fails.
        """
        path = Path(path)
        if path.exists():
            log.debug(f"{self.name} executable present at '{path}'.")
            report(f"✅ {self.name} found", "green")
            return

        report(f"📥 Downloading {self.name}...", "yellow")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ProvisionError(f"Could not create directory '{path.parent}': {e}") from e

        archive_path = self.staging_path(path)
        self._download_file(self.url, archive_path)

        report(f"✅ Downloaded {self.name}", "green")
        report(f"⚠️  Please extract {path.name} from the zip file to {path.parent.name}/ folder", "yellow")
        report(f"   Zip location: {archive_path}", "cyan")

    def _get(self, url: str) -> requests.Response:
        """Issues one streaming GET without letting requests follow redirects."""
        log.info(f"GET {url}")
        return requests.get(url, stream=True, timeout=self.timeout, headers=self.headers, allow_redirects=False)

    def _open_download(self, url: str) -> requests.Response:
        """
        Returns the response carrying the archive body, following at most one redirect.

        :raises ProvisionError: On a second redirect or a non-2xx final status.
        """
        response = self._get(url)
        if response.status_code in REDIRECT_STATUS_CODES:
            location = response.headers.get("Location")
            response.close()
            if not location:
                raise ProvisionError(f"Redirect from {url} did not include a Location header.")
            target = urljoin(url, location)
            log.info(f"Following redirect to {target}")
            response = self._get(target)
            if response.status_code in REDIRECT_STATUS_CODES:
                response.close()
                raise ProvisionError(f"Refusing to follow a second redirect from {target}.")

        if not 200 <= response.status_code < 300:
            response.close()
            raise ProvisionError(f"Download of {url} failed with HTTP status {response.status_code}.")
        return response

    def _download_file(self, url: str, dest_path: Path) -> None:
        """Downloads a file with a simple progress bar, removing partial files on failure."""
        log.info(f"Downloading from {url}...")
        try:
            response = self._open_download(url)
            try:
                total_size = int(response.headers.get("content-length", 0) or 0)
                with open(dest_path, "wb") as f:
                    downloaded = 0
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if not chunk:
                            continue
                        f.write(chunk)
                        downloaded += len(chunk)
                        done = int(50 * downloaded / total_size) if total_size else 0
                        sys.stdout.write(f"\r[{'=' * done}{' ' * (50-done)}] {downloaded/1024/1024:.2f} MB")
                        sys.stdout.flush()
                sys.stdout.write("\n")
            finally:
                response.close()
        except (requests.RequestException, OSError) as e:
            log.error(f"Download failed: {e}")
            dest_path.unlink(missing_ok=True)
            raise ProvisionError(f"Failed to download {self.name} from {url}: {e}") from e
        log.info(f"Successfully downloaded to '{dest_path}'.")
