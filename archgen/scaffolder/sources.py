"""Template sources: where a template pack is read from.

Three sources share the ``TemplateSource`` interface:

* ``LocalTemplateSource`` -- a directory on disk (the built-in pack shipped
  in ``archgen/scaffolder/templates/``, a sibling checkout, or a configured
  ``localPath``).
* ``RemoteTemplateSource`` -- raw files from a Git hosting service, fetched
  with httpx and kept in a ``TemplateCache``.

``resolve_template_source`` picks one of them from ``Settings``.
"""

from __future__ import annotations

import asyncio
import shutil
from collections.abc import Iterable
from pathlib import Path, PurePosixPath

import httpx

from archgen.config import Settings
from archgen.errors import ConfigurationError, StorageError, TemplateFetchError, TemplateNotFound
from archgen.utils import atomic_write_text, print_info

BUILTIN_TEMPLATE_DIR = Path(__file__).parent / "templates"


def normalize_template_path(path: str) -> str:
    """Collapse a template id to a clean relative POSIX path.

    Raises:
        ValueError: The path is absolute after stripping or escapes its root.
    """
    parts: list[str] = []
    for part in PurePosixPath(path.replace("\\", "/").lstrip("/")).parts:
        if part in ("", "."):
            continue
        if part == "..":
            if not parts:
                raise ValueError(f"Template path escapes the template root: {path}")
            parts.pop()
            continue
        parts.append(part)
    if not parts:
        raise ValueError(f"Empty template path: {path!r}")
    return "/".join(parts)


# ---------------------------------------------------------------------------
# Local directory
# ---------------------------------------------------------------------------


class LocalTemplateSource:
    """A template pack rooted at a local directory."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _file(self, path: str) -> Path:
        return self.root / normalize_template_path(path)

    def read(self, path: str) -> str:
        target = self._file(path)
        if not target.is_file():
            raise TemplateNotFound(path)
        try:
            return target.read_text(encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Cannot read template {target}: {exc}", path=target) from exc

    def exists(self, path: str) -> bool:
        try:
            return self._file(path).is_file()
        except ValueError:
            return False

    def list(self, prefix: str = "") -> list[str]:
        """Every file under *prefix*, as sorted template ids."""
        base = self.root / normalize_template_path(prefix) if prefix.strip("/") else self.root
        if not base.is_dir():
            return []
        return sorted(
            file.relative_to(self.root).as_posix() for file in base.rglob("*") if file.is_file()
        )

    def describe(self) -> str:
        if self.root.resolve() == BUILTIN_TEMPLATE_DIR.resolve():
            return "built-in templates"
        return f"local templates at {self.root}"


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------


class TemplateCache:
    """File cache of downloaded templates keyed by ``{branch}/{path}``."""

    def __init__(self, cache_dir: str | Path) -> None:
        self.cache_dir = Path(cache_dir)

    def _path(self, key: str) -> Path:
        return self.cache_dir / normalize_template_path(key)

    def get(self, key: str) -> str | None:
        target = self._path(key)
        if not target.is_file():
            return None
        try:
            return target.read_text(encoding="utf-8")
        except OSError:
            return None

    def put(self, key: str, content: str) -> None:
        try:
            atomic_write_text(self._path(key), content)
        except OSError as exc:
            raise StorageError(f"Cannot cache template {key}: {exc}", path=self._path(key)) from exc

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def keys(self) -> list[str]:
        if not self.cache_dir.is_dir():
            return []
        return sorted(
            f.relative_to(self.cache_dir).as_posix() for f in self.cache_dir.rglob("*") if f.is_file()
        )

    def size(self) -> int:
        """Total size of the cached files in bytes."""
        if not self.cache_dir.is_dir():
            return 0
        return sum(f.stat().st_size for f in self.cache_dir.rglob("*") if f.is_file())

    def clear(self) -> int:
        """Delete every cached file and return how many there were."""
        count = len(self.keys())
        if self.cache_dir.exists():
            shutil.rmtree(self.cache_dir)
        return count


# ---------------------------------------------------------------------------
# Remote repository
# ---------------------------------------------------------------------------


def build_raw_url(repository: str, branch: str, path: str) -> str:
    """Raw-content URL of *path* on *branch* of *repository*.

    Examples::

        build_raw_url("https://github.com/acme/packs", "main", "a/b.j2")
        -> "https://raw.githubusercontent.com/acme/packs/main/a/b.j2"
    """
    repo = repository.rstrip("/")
    if repo.endswith(".git"):
        repo = repo[:-4]
    normalized = normalize_template_path(path)

    for host, pattern in (
        ("github.com", "https://raw.githubusercontent.com/{slug}/{branch}/{path}"),
        ("gitlab.com", "https://gitlab.com/{slug}/-/raw/{branch}/{path}"),
        ("bitbucket.org", "https://bitbucket.org/{slug}/raw/{branch}/{path}"),
    ):
        if host in repo:
            slug = repo.split(f"{host}/", 1)[-1]
            return pattern.format(slug=slug, branch=branch, path=normalized)
    return f"{repo}/raw/{branch}/{normalized}"


class RemoteTemplateSource:
    """Templates downloaded from a Git repository, cache first.

    ``list()`` can only report what is already cached: raw-content endpoints
    do not expose directory listings.
    """

    def __init__(
        self,
        repository: str,
        branch: str = "main",
        cache: TemplateCache | None = None,
        timeout: int = 30,
        transport: httpx.BaseTransport | None = None,
        async_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.repository = repository
        self.branch = branch
        self.cache = cache
        self.timeout = timeout
        self.transport = transport
        self.async_transport = async_transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            follow_redirects=True,
            transport=self.transport,
        )

    def _async_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            follow_redirects=True,
            transport=self.async_transport,
        )

    def cache_key(self, path: str) -> str:
        return f"{self.branch}/{normalize_template_path(path)}"

    def url_for(self, path: str) -> str:
        return build_raw_url(self.repository, self.branch, path)

    # -- TemplateSource ----------------------------------------------------

    def read(self, path: str) -> str:
        key = self.cache_key(path)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        url = self.url_for(path)
        try:
            with self._client() as client:
                response = client.get(url)
                if response.status_code == 404:
                    raise TemplateNotFound(path)
                response.raise_for_status()
                content = response.text
        except httpx.ConnectError as exc:
            raise TemplateFetchError(f"Cannot connect to {url}: {exc}", url=url) from exc
        except httpx.TimeoutException as exc:
            raise TemplateFetchError(
                f"Request to {url} timed out after {self.timeout}s", url=url
            ) from exc
        except httpx.HTTPStatusError as exc:
            raise TemplateFetchError(
                f"Template server returned HTTP {exc.response.status_code} for {url}", url=url
            ) from exc
        except httpx.HTTPError as exc:
            raise TemplateFetchError(f"Failed to download {url}: {exc}", url=url) from exc

        if self.cache is not None:
            self.cache.put(key, content)
        return content

    def exists(self, path: str) -> bool:
        """True when the server has *path*.

        Only a 404 means absent; network and server failures raise
        ``TemplateFetchError``.
        """
        try:
            self.read(path)
        except TemplateNotFound:
            return False
        return True

    def list(self, prefix: str = "") -> list[str]:
        if self.cache is None:
            return []
        branch_prefix = f"{self.branch}/"
        wanted = prefix.strip("/")
        paths = [key[len(branch_prefix):] for key in self.cache.keys() if key.startswith(branch_prefix)]
        return [p for p in paths if not wanted or p == wanted or p.startswith(f"{wanted}/")]

    def describe(self) -> str:
        return f"remote templates from {self.repository} ({self.branch})"

    # -- Prefetch ----------------------------------------------------------

    async def prefetch(self, paths: Iterable[str]) -> dict[str, str | None]:
        """Download *paths* concurrently into the cache.

        Returns ``{path: None}`` for every success and ``{path: error}`` for
        every failure; one failing file does not cancel the others.
        """
        wanted = list(paths)

        async def _fetch(client: httpx.AsyncClient, path: str) -> str | None:
            url = self.url_for(path)
            try:
                response = await client.get(url)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                return f"HTTP {exc.response.status_code} for {url}"
            except httpx.HTTPError as exc:
                return f"{type(exc).__name__}: {exc}"
            if self.cache is not None:
                self.cache.put(self.cache_key(path), response.text)
            return None

        async with self._async_client() as client:
            outcomes = await asyncio.gather(*(_fetch(client, path) for path in wanted))
        return dict(zip(wanted, outcomes))


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def resolve_template_source(
    settings: Settings,
    project_root: str | Path | None = None,
    transport: httpx.BaseTransport | None = None,
) -> LocalTemplateSource | RemoteTemplateSource:
    """Pick the template source for one invocation.

    Order: configured local path, auto-detected sibling directory, configured
    remote repository, built-in pack.

    Raises:
        ConfigurationError: A configured local path is missing or not a
            directory.
    """
    base = Path(project_root) if project_root is not None else Path.cwd()
    templates = settings.templates

    if templates.local_path is not None:
        local = templates.local_path if templates.local_path.is_absolute() else base / templates.local_path
        if not local.exists():
            raise ConfigurationError(f"Local template path does not exist: {local}")
        if not local.is_dir():
            raise ConfigurationError(f"Local template path is not a directory: {local}")
        return LocalTemplateSource(local)

    if settings.auto_detect_dir is not None:
        candidate = settings.auto_detect_dir
        if not candidate.is_absolute():
            candidate = base / candidate
        if candidate.is_dir():
            print_info(f"Using local templates from {candidate}")
            return LocalTemplateSource(candidate)

    if templates.repository:
        return RemoteTemplateSource(
            templates.repository,
            branch=templates.branch,
            cache=TemplateCache(settings.cache_dir),
            timeout=settings.http_timeout,
            transport=transport,
        )

    return LocalTemplateSource(BUILTIN_TEMPLATE_DIR)
