"""Download sources for ISO images and helpers to rank and pick them."""

from __future__ import annotations

import dataclasses
import enum
from dataclasses import dataclass, field
from typing import Callable, Iterable, Iterator, Optional


class SourceType(enum.Enum):
    """How an image is fetched from a source."""

    DIRECT = "Direct"
    MIRROR = "Mirror"
    TORRENT = "Torrent"
    MAGNET = "Magnet"

    def __str__(self) -> str:
        return self.value


class SourcePriority(enum.IntEnum):
    """Relative preference of a source; higher is better."""

    LOW = 1
    MEDIUM = 2
    HIGH = 3
    PREFERRED = 4

    def __str__(self) -> str:
        return self.name.capitalize()


_TYPE_BONUS = {
    SourceType.DIRECT: 200,
    SourceType.TORRENT: 150,
    SourceType.MAGNET: 100,
    SourceType.MIRROR: 50,
}


@dataclass(eq=False)
class DownloadSource:
    """A place an ISO image can be downloaded from.

    Two sources are equal when they share a type and a primary URL.
    Sources order best first: a "smaller" source has a higher selection score.
    """

    source_type: SourceType
    priority: SourcePriority
    url: Optional[str] = None
    magnet_link: Optional[str] = None
    trackers: list[str] = field(default_factory=list)
    region: Optional[str] = None
    description: Optional[str] = None
    verified: bool = False
    speed_rating: Optional[int] = None

    @classmethod
    def direct(cls, url: str, priority: SourcePriority) -> "DownloadSource":
        """A direct HTTP(S) download."""
        return cls(SourceType.DIRECT, priority, url=url)

    @classmethod
    def mirror(
        cls, url: str, priority: SourcePriority, region: Optional[str] = None
    ) -> "DownloadSource":
        """A mirror download, optionally tagged with a region."""
        return cls(SourceType.MIRROR, priority, url=url, region=region)

    @classmethod
    def torrent(cls, torrent_url: str, priority: SourcePriority) -> "DownloadSource":
        """A .torrent file download."""
        return cls(SourceType.TORRENT, priority, url=torrent_url)

    @classmethod
    def magnet(
        cls,
        magnet_link: str,
        priority: SourcePriority,
        trackers: Optional[Iterable[str]] = None,
    ) -> "DownloadSource":
        """A magnet link with its trackers."""
        return cls(
            SourceType.MAGNET,
            priority,
            magnet_link=magnet_link,
            trackers=list(trackers or []),
        )

    def with_description(self, description: str) -> "DownloadSource":
        """Return a copy with the given description."""
        return dataclasses.replace(self, description=description, trackers=list(self.trackers))

    def as_verified(self) -> "DownloadSource":
        """Return a copy marked as verified."""
        return dataclasses.replace(self, verified=True, trackers=list(self.trackers))

    def with_speed_rating(self, rating: int) -> "DownloadSource":
        """Return a copy with a speed rating clamped to 1..10."""
        clamped = min(max(rating, 1), 10)
        return dataclasses.replace(self, speed_rating=clamped, trackers=list(self.trackers))

    def with_region(self, region: str) -> "DownloadSource":
        """Return a copy tagged with the given region."""
        return dataclasses.replace(self, region=region, trackers=list(self.trackers))

    def primary_url(self) -> Optional[str]:
        """The URL if set, otherwise the magnet link."""
        return self.url if self.url is not None else self.magnet_link

    def is_usable(self) -> bool:
        """Whether the fields this source type needs are present."""
        if self.source_type is SourceType.MAGNET:
            return self.magnet_link is not None
        return self.url is not None

    def selection_score(self) -> int:
        """Score used to rank sources; higher is better."""
        score = int(self.priority) * 1000
        if self.speed_rating is not None:
            score += self.speed_rating * 100
        if self.verified:
            score += 500
        return score + _TYPE_BONUS[self.source_type]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DownloadSource):
            return NotImplemented
        return (
            self.primary_url() == other.primary_url()
            and self.source_type == other.source_type
        )

    def __hash__(self) -> int:
        return hash((self.primary_url(), self.source_type))

    def __lt__(self, other: "DownloadSource") -> bool:
        if not isinstance(other, DownloadSource):
            return NotImplemented
        return self.selection_score() > other.selection_score()

    def __le__(self, other: "DownloadSource") -> bool:
        if not isinstance(other, DownloadSource):
            return NotImplemented
        return self.selection_score() >= other.selection_score()

    def __gt__(self, other: "DownloadSource") -> bool:
        if not isinstance(other, DownloadSource):
            return NotImplemented
        return self.selection_score() < other.selection_score()

    def __ge__(self, other: "DownloadSource") -> bool:
        if not isinstance(other, DownloadSource):
            return NotImplemented
        return self.selection_score() <= other.selection_score()

    def __str__(self) -> str:
        text = f"{self.source_type} ({self.priority})"
        if self.region is not None:
            text += f" [{self.region}]"
        if self.description is not None:
            text += f" - {self.description}"
        return text


@dataclass(frozen=True)
class BestSources:
    """The best source for each download method, where one exists."""

    direct: Optional[DownloadSource] = None
    mirror: Optional[DownloadSource] = None
    torrent: Optional[DownloadSource] = None
    magnet: Optional[DownloadSource] = None

    def overall_best(self) -> Optional[DownloadSource]:
        """The highest scoring source across all methods."""
        candidates = [
            s for s in (self.direct, self.mirror, self.torrent, self.magnet) if s is not None
        ]
        if not candidates:
            return None
        # On ties the later candidate wins.
        return max(reversed(candidates), key=DownloadSource.selection_score)

    def ordered_sources(self) -> list[DownloadSource]:
        """All present sources, best score first."""
        present = [
            s for s in (self.direct, self.torrent, self.magnet, self.mirror) if s is not None
        ]
        return sorted(present, key=DownloadSource.selection_score, reverse=True)


class SourceCollection:
    """Download sources kept sorted best first."""

    def __init__(self, sources: Optional[Iterable[DownloadSource]] = None) -> None:
        self._sources: list[DownloadSource] = sorted(sources or [])

    @property
    def sources(self) -> tuple[DownloadSource, ...]:
        """The sources in order of preference."""
        return tuple(self._sources)

    def add_source(self, source: DownloadSource) -> None:
        """Add a source if it is usable, keeping the order."""
        if source.is_usable():
            self._sources.append(source)
            self._sources.sort()

    def by_type(self, source_type: SourceType) -> list[DownloadSource]:
        return [s for s in self._sources if s.source_type is source_type]

    def by_priority(self, priority: SourcePriority) -> list[DownloadSource]:
        return [s for s in self._sources if s.priority == priority]

    def verified_sources(self) -> list[DownloadSource]:
        return [s for s in self._sources if s.verified]

    def by_region(self, preferred_region: str) -> list[DownloadSource]:
        """Sources in the region, followed by sources with no region."""
        in_region = [s for s in self._sources if s.region == preferred_region]
        unregioned = [s for s in self._sources if s.region is None]
        return in_region + unregioned

    def best_source(self) -> Optional[DownloadSource]:
        return self._sources[0] if self._sources else None

    def best_by_method(self) -> BestSources:
        def first(source_type: SourceType) -> Optional[DownloadSource]:
            return next((s for s in self._sources if s.source_type is source_type), None)

        return BestSources(
            direct=first(SourceType.DIRECT),
            mirror=first(SourceType.MIRROR),
            torrent=first(SourceType.TORRENT),
            magnet=first(SourceType.MAGNET),
        )

    def filter_by_min_speed(self, min_speed: int) -> list[DownloadSource]:
        return [s for s in self._sources if (s.speed_rating or 0) >= min_speed]

    def remove_sources(self, predicate: Callable[[DownloadSource], bool]) -> None:
        """Drop every source for which the predicate is true."""
        self._sources = [s for s in self._sources if not predicate(s)]

    def __len__(self) -> int:
        return len(self._sources)

    def __bool__(self) -> bool:
        return bool(self._sources)

    def __iter__(self) -> Iterator[DownloadSource]:
        return iter(self._sources)

    def __repr__(self) -> str:
        return f"SourceCollection({self._sources!r})"