"""Descriptions of distributions and of the ISO images resolved from them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from isod.sources import DownloadSource
from isod.versions import ReleaseType, VersionDetector


@dataclass
class IsoInfo:
    """A concrete ISO image: one distro, version, architecture and variant."""

    distro: str
    version: str
    architecture: str
    filename: str
    release_type: ReleaseType
    variant: Optional[str] = None
    download_sources: list[DownloadSource] = field(default_factory=list)
    checksum: Optional[str] = None
    checksum_type: Optional[str] = None
    release_date: Optional[str] = None
    size_bytes: Optional[int] = None

    def __str__(self) -> str:
        text = f"{self.distro}-{self.version}-{self.architecture}"
        if self.variant is not None:
            text += f"-{self.variant}"
        return text + ".iso"


@dataclass
class DistroDefinition:
    """Everything needed to find, name and fetch the ISOs of a distribution.

    URL and filename patterns may hold the placeholders ``{distro}``,
    ``{version}``, ``{arch}``, ``{variant}`` and ``{filename}``.
    """

    name: str
    display_name: str
    description: str
    homepage: str
    supported_architectures: list[str]
    supported_variants: list[str]
    version_detector: VersionDetector
    download_sources: list[DownloadSource]
    filename_pattern: str
    default_variant: Optional[str] = None
    checksum_urls: list[str] = field(default_factory=list)