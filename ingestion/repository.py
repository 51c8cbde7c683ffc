# ingestion/repository.py
"""
Repository fetcher: clone a remote git repository into a scratch
directory and guarantee the directory is gone afterwards.

Each job clones into its own directory under SCRATCH_ROOT
(<tag>-<job_id>), so concurrent imports never share a checkout.
"""
import logging
import shutil
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, Union
from urllib.parse import quote, urlsplit, urlunsplit

from git import Repo as GitRepo
from git.exc import GitCommandError, GitError

from config import GIT_CLONE_TIMEOUT, SCRATCH_ROOT
from ingestion.models import FetchError

logger = logging.getLogger(__name__)


def derive_repo_tag(url: str) -> str:
    """
    Knowledge tag for a repository: the last path segment of its URL
    without a trailing ".git".

    >>> derive_repo_tag("https://example/org/myrepo.git")
    'myrepo'
    """
    path = urlsplit(url).path if "://" in url else url.rsplit(":", 1)[-1]
    name = path.rstrip("/").rsplit("/", 1)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    if not name:
        raise FetchError(f"cannot derive repository name from URL: {url!r}")
    return name


def with_credentials(url: str, username: Optional[str], password: Optional[str]) -> str:
    """Embed HTTP basic credentials into an http(s) clone URL."""
    if not username and not password:
        return url
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    userinfo = quote(username or "", safe="")
    if password:
        userinfo = f"{userinfo}:{quote(password, safe='')}"
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


def redact(url: str) -> str:
    """URL safe for logs: user info removed."""
    parts = urlsplit(url)
    if not parts.username and not parts.password:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, f"***@{host}", parts.path, parts.query, parts.fragment))


def remove_scratch(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path, ignore_errors=False)
        logger.debug("Removed scratch directory %s", path)


class RepositoryFetcher:
    def __init__(
        self,
        scratch_root: Union[str, Path] = SCRATCH_ROOT,
        timeout: int = GIT_CLONE_TIMEOUT,
    ):
        self.scratch_root = Path(scratch_root)
        self.timeout = timeout

    def scratch_dir(self, tag: str, job_id: Optional[str] = None) -> Path:
        return self.scratch_root / f"{tag}-{job_id or uuid.uuid4().hex[:8]}"

    def _clone_env(self) -> dict:
        # Never prompt for credentials; abort transfers stalled for `timeout` seconds
        return {
            "GIT_TERMINAL_PROMPT": "0",
            "GIT_ASKPASS": "",
            "GIT_HTTP_LOW_SPEED_LIMIT": "1",
            "GIT_HTTP_LOW_SPEED_TIME": str(self.timeout),
        }

    def fetch_repository(
        self,
        url: str,
        username: Optional[str],
        password: Optional[str],
        local_path: Path,
    ) -> Path:
        """
        Clone ``url`` into ``local_path``, removing any stale content first.

        Raises:
            FetchError: authentication, network, URL or scratch directory problems
        """
        try:
            remove_scratch(local_path)
            local_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FetchError(f"cannot prepare scratch directory: {e}") from None

        logger.info("Cloning %s into %s", redact(url), local_path.resolve())
        try:
            repo = GitRepo.clone_from(
                with_credentials(url, username, password),
                local_path,
                env=self._clone_env(),
                depth=1,
            )
            repo.close()
        except GitCommandError as e:
            # stderr may echo the clone URL; keep credentials out of the error
            stderr = (e.stderr or "").strip()
            if password:
                stderr = stderr.replace(quote(password, safe=""), "***").replace(password, "***")
            raise FetchError(f"git clone failed (exit {e.status}): {stderr}") from None
        except (GitError, OSError) as e:
            raise FetchError(f"git clone failed: {type(e).__name__}") from None

        return local_path

    @contextmanager
    def checkout(
        self,
        url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> Iterator[Path]:
        """
        Clone, hand the working tree to the caller, then always clean up.

        Usage:
            with fetcher.checkout(url, user, pw) as root:
                walk(root)
        """
        local_path = self.scratch_dir(derive_repo_tag(url), job_id)
        try:
            yield self.fetch_repository(url, username, password, local_path)
        finally:
            try:
                remove_scratch(local_path)
            except OSError:
                logger.exception("Could not remove scratch directory %s", local_path)
