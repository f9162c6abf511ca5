"""Release versions of distributions and the detectors that discover them."""

from __future__ import annotations

import abc
import dataclasses
import enum
import itertools
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

import httpx

USER_AGENT = "isod/0.1.0"
_TIMEOUT = 30.0
_FEED_LIMIT = 20
_U32_MAX = 2**32 - 1

logger = logging.getLogger(__name__)


class VersionDetectionError(Exception):
    """Raised when versions cannot be detected or looked up."""


class ReleaseType(enum.Enum):
    """Kind of release a version belongs to."""

    STABLE = "Stable"
    LTS = "LTS"
    BETA = "Beta"
    ALPHA = "Alpha"
    RC = "RC"
    DAILY = "Daily"
    WEEKLY = "Weekly"
    SNAPSHOT = "Snapshot"

    def __str__(self) -> str:
        return self.value


_TYPE_PRIORITY = {
    ReleaseType.STABLE: 100,
    ReleaseType.LTS: 110,
    ReleaseType.RC: 80,
    ReleaseType.BETA: 60,
    ReleaseType.ALPHA: 40,
    ReleaseType.DAILY: 20,
    ReleaseType.WEEKLY: 25,
    ReleaseType.SNAPSHOT: 10,
}

_VERSION_SEPARATORS = re.compile(r"[._-]")


@dataclass
class VersionInfo:
    """One released version of a distribution.

    Ordering ranks release types first (LTS above Stable above RC and so on),
    then the numeric parts of the version string.
    """

    version: str
    release_type: ReleaseType
    release_date: Optional[str] = None
    end_of_life: Optional[str] = None
    download_url_base: Optional[str] = None
    changelog_url: Optional[str] = None
    notes: Optional[str] = None

    def with_release_date(self, date: str) -> "VersionInfo":
        return dataclasses.replace(self, release_date=date)

    def with_download_base(self, url: str) -> "VersionInfo":
        return dataclasses.replace(self, download_url_base=url)

    def with_changelog(self, url: str) -> "VersionInfo":
        return dataclasses.replace(self, changelog_url=url)

    def with_notes(self, notes: str) -> "VersionInfo":
        return dataclasses.replace(self, notes=notes)

    def is_supported(self) -> bool:
        """True unless an end-of-life date has been recorded."""
        return self.end_of_life is None

    def version_parts(self) -> list[int]:
        """Leading numbers of each '.', '-' or '_' separated part of the version."""
        parts = []
        for piece in _VERSION_SEPARATORS.split(self.version):
            digits = "".join(itertools.takewhile(lambda c: c in "0123456789", piece))
            if digits and int(digits) <= _U32_MAX:
                parts.append(int(digits))
        return parts

    def _sort_key(self) -> tuple[int, list[int]]:
        return (_TYPE_PRIORITY[self.release_type], self.version_parts())

    def __lt__(self, other: "VersionInfo") -> bool:
        if not isinstance(other, VersionInfo):
            return NotImplemented
        return self._sort_key() < other._sort_key()

    def __le__(self, other: "VersionInfo") -> bool:
        if not isinstance(other, VersionInfo):
            return NotImplemented
        return self._sort_key() <= other._sort_key()

    def __gt__(self, other: "VersionInfo") -> bool:
        if not isinstance(other, VersionInfo):
            return NotImplemented
        return self._sort_key() > other._sort_key()

    def __ge__(self, other: "VersionInfo") -> bool:
        if not isinstance(other, VersionInfo):
            return NotImplemented
        return self._sort_key() >= other._sort_key()

    def __str__(self) -> str:
        text = f"{self.version} ({self.release_type})"
        if self.release_date is not None:
            text += f" - {self.release_date}"
        return text


def _newest_first(versions: Iterable[VersionInfo]) -> list[VersionInfo]:
    return sorted(versions, key=VersionInfo._sort_key, reverse=True)


def _last_max(versions: list[VersionInfo]) -> Optional[VersionInfo]:
    if not versions:
        return None
    # Among equal maxima the last one wins.
    return max(reversed(versions), key=VersionInfo._sort_key)


class VersionDetector(abc.ABC):
    """Something that can list the available versions of a distribution."""

    @abc.abstractmethod
    async def detect_versions(self) -> list[VersionInfo]:
        """Return every version this detector can find."""

    async def latest_stable(self) -> VersionInfo:
        """The newest Stable or LTS version."""
        versions = await self.detect_versions()
        stable = [
            v for v in versions if v.release_type in (ReleaseType.STABLE, ReleaseType.LTS)
        ]
        best = _last_max(stable)
        if best is None:
            raise VersionDetectionError("No stable versions found")
        return best

    async def version_exists(self, version: str) -> bool:
        versions = await self.detect_versions()
        return any(v.version == version for v in versions)


async def _fetch(url: str, failure: str, headers: Optional[dict[str, str]] = None) -> httpx.Response:
    try:
        async with httpx.AsyncClient(
            timeout=_TIMEOUT,
            headers={"User-Agent": USER_AGENT},
            follow_redirects=True,
        ) as client:
            return await client.get(url, headers=headers)
    except httpx.HTTPError as exc:
        raise VersionDetectionError(f"{failure}: {exc}") from exc


def _status_text(response: httpx.Response) -> str:
    return f"{response.status_code} {response.reason_phrase}".strip()


def _check_status(response: httpx.Response, what: str) -> None:
    if not response.is_success:
        raise VersionDetectionError(f"{what} failed with status: {_status_text(response)}")


def _json(response: httpx.Response, failure: str) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise VersionDetectionError(f"{failure}: {exc}") from exc


def _versions_from_text(content: str, pattern: str, release_type: ReleaseType) -> list[VersionInfo]:
    """Unique first-group matches of the pattern, newest first."""
    try:
        regex = re.compile(pattern)
    except re.error as exc:
        raise VersionDetectionError(f"Invalid version regex pattern: {exc}") from exc
    if regex.groups < 1:
        return []
    seen: set[str] = set()
    versions = []
    for match in regex.finditer(content):
        version = match.group(1)
        if version is not None and version not in seen:
            seen.add(version)
            versions.append(VersionInfo(version, release_type))
    return _newest_first(versions)


class FeedVersionDetector(VersionDetector):
    """Finds versions by matching a regex against an RSS/Atom feed."""

    def __init__(self, feed_url: str, version_regex: str, release_type: ReleaseType) -> None:
        self.feed_url = feed_url
        self.version_regex = version_regex
        self.release_type = release_type

    def __repr__(self) -> str:
        return f"FeedVersionDetector(feed_url={self.feed_url!r})"

    async def detect_versions(self) -> list[VersionInfo]:
        response = await _fetch(self.feed_url, "Failed to fetch RSS feed")
        _check_status(response, "RSS feed request")
        versions = _versions_from_text(response.text, self.version_regex, self.release_type)
        return versions[:_FEED_LIMIT]


def _parse_release(raw: Any) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValueError("release is not an object")
    tag_name = raw.get("tag_name")
    if not isinstance(tag_name, str):
        raise ValueError("release has no tag_name")
    for flag in ("prerelease", "draft"):
        if not isinstance(raw.get(flag), bool):
            raise ValueError(f"release has no boolean {flag}")
    for optional in ("name", "published_at"):
        value = raw.get(optional)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"release {optional} is not a string")
    return raw


class GitHubVersionDetector(VersionDetector):
    """Finds versions from the releases of a GitHub repository."""

    def __init__(self, repo_owner: str, repo_name: str, include_prereleases: bool) -> None:
        self.repo_owner = repo_owner
        self.repo_name = repo_name
        self.include_prereleases = include_prereleases
        self.version_prefix: Optional[str] = None

    def __repr__(self) -> str:
        return f"GitHubVersionDetector({self.repo_owner!r}, {self.repo_name!r})"

    def with_version_prefix(self, prefix: str) -> "GitHubVersionDetector":
        """Strip this prefix from tag names before treating them as versions."""
        self.version_prefix = prefix
        return self

    @property
    def releases_url(self) -> str:
        return f"https://api.github.com/repos/{self.repo_owner}/{self.repo_name}/releases"

    async def detect_versions(self) -> list[VersionInfo]:
        response = await _fetch(
            self.releases_url,
            "Failed to fetch GitHub releases",
            headers={"Accept": "application/vnd.github.v3+json"},
        )
        _check_status(response, "GitHub API request")
        payload = _json(response, "Failed to parse GitHub releases JSON")
        try:
            if not isinstance(payload, list):
                raise ValueError("expected a list of releases")
            releases = [_parse_release(raw) for raw in payload]
        except ValueError as exc:
            raise VersionDetectionError(f"Failed to parse GitHub releases JSON: {exc}") from exc

        versions = []
        for release in releases:
            if release["draft"]:
                continue
            prerelease = release["prerelease"]
            if prerelease and not self.include_prereleases:
                continue
            version = release["tag_name"]
            if self.version_prefix is not None and version.startswith(self.version_prefix):
                version = version[len(self.version_prefix):]
            if version.startswith("v"):
                version = version[1:]
            versions.append(self._version_info(version, prerelease, release.get("published_at")))
        return versions

    @staticmethod
    def _version_info(version: str, prerelease: bool, published_at: Optional[str]) -> VersionInfo:
        if not prerelease:
            release_type = ReleaseType.STABLE
        elif "rc" in version:
            release_type = ReleaseType.RC
        elif "beta" in version:
            release_type = ReleaseType.BETA
        elif "alpha" in version:
            release_type = ReleaseType.ALPHA
        else:
            release_type = ReleaseType.BETA
        info = VersionInfo(version, release_type)
        if published_at is not None:
            info = info.with_release_date(published_at.split("T", 1)[0])
        return info


class WebScrapingDetector(VersionDetector):
    """Finds Stable versions by matching a regex against a web page."""

    def __init__(self, base_url: str, version_selector: str, version_regex: str) -> None:
        self.base_url = base_url
        self.version_selector = version_selector
        self.version_regex = version_regex
        self.date_selector: Optional[str] = None
        self.date_format: Optional[str] = None

    def __repr__(self) -> str:
        return f"WebScrapingDetector(base_url={self.base_url!r})"

    async def detect_versions(self) -> list[VersionInfo]:
        response = await _fetch(self.base_url, "Failed to fetch web page")
        _check_status(response, "Web request")
        return _versions_from_text(response.text, self.version_regex, ReleaseType.STABLE)


class ApiVersionDetector(VersionDetector):
    """Finds Stable versions in a JSON array returned by an API.

    Only paths of the form ``$.field`` are understood.
    """

    def __init__(self, api_url: str, version_json_path: str) -> None:
        self.api_url = api_url
        self.version_json_path = version_json_path
        self.auth_header: Optional[str] = None
        self.date_json_path: Optional[str] = None

    def __repr__(self) -> str:
        return f"ApiVersionDetector(api_url={self.api_url!r})"

    async def detect_versions(self) -> list[VersionInfo]:
        headers = {"Authorization": self.auth_header} if self.auth_header is not None else None
        response = await _fetch(self.api_url, "Failed to fetch API data", headers=headers)
        _check_status(response, "API request")
        payload = _json(response, "Failed to parse API JSON response")
        if not isinstance(payload, list):
            return []
        versions = []
        for item in payload:
            value = self._extract(item, self.version_json_path)
            if value is not None:
                versions.append(VersionInfo(value, ReleaseType.STABLE))
        return versions

    @staticmethod
    def _extract(item: Any, path: str) -> Optional[str]:
        if not path.startswith("$.") or not isinstance(item, dict):
            return None
        value = item.get(path[2:])
        return value if isinstance(value, str) else None


class StaticVersionDetector(VersionDetector):
    """Returns a fixed list of known versions."""

    def __init__(self, versions: Iterable[VersionInfo]) -> None:
        self.versions = list(versions)

    def __repr__(self) -> str:
        return f"StaticVersionDetector({len(self.versions)} versions)"

    async def detect_versions(self) -> list[VersionInfo]:
        return list(self.versions)


class CompositeVersionDetector(VersionDetector):
    """Combines several detectors, skipping any that fail."""

    def __init__(self) -> None:
        self.detectors: list[VersionDetector] = []

    def __repr__(self) -> str:
        return f"CompositeVersionDetector({len(self.detectors)} detectors)"

    def add_detector(self, detector: VersionDetector) -> "CompositeVersionDetector":
        self.detectors.append(detector)
        return self

    async def detect_versions(self) -> list[VersionInfo]:
        found: list[VersionInfo] = []
        for detector in self.detectors:
            try:
                found.extend(await detector.detect_versions())
            except VersionDetectionError as exc:
                logger.warning("Version detector failed: %s", exc)
        ordered = _newest_first(found)
        # Drop consecutive entries that repeat the same version string.
        return [next(group) for _, group in itertools.groupby(ordered, key=lambda v: v.version)]


def github(owner: str, repo: str, include_prereleases: bool) -> VersionDetector:
    return GitHubVersionDetector(owner, repo, include_prereleases)


def rss_feed(feed_url: str, version_regex: str, release_type: ReleaseType) -> VersionDetector:
    return FeedVersionDetector(feed_url, version_regex, release_type)


def web_scraper(base_url: str, version_selector: str, version_regex: str) -> VersionDetector:
    return WebScrapingDetector(base_url, version_selector, version_regex)


def api(api_url: str, version_json_path: str) -> VersionDetector:
    return ApiVersionDetector(api_url, version_json_path)


def static_versions(versions: Iterable[VersionInfo]) -> VersionDetector:
    return StaticVersionDetector(versions)


def composite() -> CompositeVersionDetector:
    return CompositeVersionDetector()