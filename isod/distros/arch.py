"""Built-in definition of Arch Linux."""

from __future__ import annotations

from isod.definition import DistroDefinition
from isod.sources import DownloadSource, SourcePriority
from isod.versions import (
    CompositeVersionDetector,
    ReleaseType,
    VersionInfo,
    api,
    composite,
    rss_feed,
    static_versions,
    web_scraper,
)

_ARCHIVE = "https://archive.archlinux.org/iso"
_DATE_REGEX = r"(\d{4}\.\d{2}\.\d{2})"


def _monthly(version: str, date: str) -> VersionInfo:
    return (
        VersionInfo(version, ReleaseType.STABLE)
        .with_release_date(date)
        .with_download_base(f"{_ARCHIVE}/{version}/")
    )


def _version_detector() -> CompositeVersionDetector:
    return (
        composite()
        .add_detector(
            web_scraper("https://archlinux.org/download/", ".download-info", _DATE_REGEX)
        )
        .add_detector(
            rss_feed("https://archlinux.org/feeds/news/", _DATE_REGEX, ReleaseType.STABLE)
        )
        .add_detector(
            api(
                "https://gitlab.archlinux.org/api/v4/projects/"
                "archlinux%2Farch-release-dates/repository/tags",
                "$.[*].name",
            )
        )
        .add_detector(
            static_versions(
                [
                    _monthly("2024.06.01", "2024-06-01").with_notes("Monthly rolling release"),
                    _monthly("2024.05.01", "2024-05-01"),
                    _monthly("2024.04.01", "2024-04-01"),
                    VersionInfo("latest", ReleaseType.STABLE)
                    .with_notes("Latest rolling release")
                    .with_download_base("https://archlinux.org/iso/latest/"),
                ]
            )
        )
    )


def _download_sources() -> list[DownloadSource]:
    return [
        DownloadSource.direct(
            "https://archlinux.org/iso/latest/{filename}", SourcePriority.PREFERRED
        )
        .with_description("Official Arch Linux downloads")
        .as_verified(),
        DownloadSource.direct(
            f"{_ARCHIVE}/{{version}}/{{filename}}", SourcePriority.PREFERRED
        )
        .with_description("Arch Linux archive")
        .as_verified(),
        DownloadSource.mirror(
            "https://mirrors.kernel.org/archlinux/iso/latest/{filename}",
            SourcePriority.HIGH,
            "US",
        )
        .with_description("Kernel.org mirror")
        .with_speed_rating(9),
        DownloadSource.mirror(
            "https://mirror.rackspace.com/archlinux/iso/latest/{filename}",
            SourcePriority.HIGH,
            "US",
        )
        .with_description("Rackspace mirror")
        .with_speed_rating(8),
        DownloadSource.mirror(
            "https://america.mirror.pkgbuild.com/iso/latest/{filename}",
            SourcePriority.HIGH,
            "US",
        ).with_description("Official US mirror"),
        DownloadSource.mirror(
            "https://europe.mirror.pkgbuild.com/iso/latest/{filename}",
            SourcePriority.HIGH,
            "EU",
        ).with_description("Official EU mirror"),
        DownloadSource.mirror(
            "https://asia.mirror.pkgbuild.com/iso/latest/{filename}",
            SourcePriority.HIGH,
            "AS",
        ).with_description("Official Asia mirror"),
        DownloadSource.mirror(
            "https://ftp.jaist.ac.jp/pub/Linux/ArchLinux/iso/latest/{filename}",
            SourcePriority.MEDIUM,
            "JP",
        ).with_description("JAIST Japan mirror"),
        DownloadSource.mirror(
            "https://mirror.aarnet.edu.au/pub/archlinux/iso/latest/{filename}",
            SourcePriority.MEDIUM,
            "AU",
        ).with_description("AARNet Australian mirror"),
        DownloadSource.magnet(
            "magnet:?xt=urn:btih:PLACEHOLDER&dn={filename}",
            SourcePriority.HIGH,
            [
                "udp://tracker.archlinux.org:6969",
                "udp://tracker.openbittorrent.com:80",
                "udp://tracker.publicbt.com:80",
            ],
        ).with_description("Arch Linux BitTorrent"),
    ]


def create_definition() -> DistroDefinition:
    """The built-in Arch Linux definition."""
    return DistroDefinition(
        name="arch",
        display_name="Arch Linux",
        description=(
            "A lightweight and flexible Linux distribution that follows "
            "the rolling release model"
        ),
        homepage="https://archlinux.org",
        # Only x86_64 is official; ARM ports are separate projects.
        supported_architectures=["x86_64"],
        supported_variants=["base"],
        version_detector=_version_detector(),
        download_sources=_download_sources(),
        filename_pattern="archlinux-{version}-{arch}.iso",
        default_variant="base",
        checksum_urls=[
            "https://archlinux.org/iso/latest/sha256sums.txt",
            "https://archlinux.org/iso/latest/b2sums.txt",
            f"{_ARCHIVE}/{{version}}/sha256sums.txt",
        ],
    )