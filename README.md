# isod

A library of building blocks for finding bootable Linux ISO images and
putting them on a Ventoy USB stick.

## What it contains

- **`isod.sources`**: download sources for an image. These can be direct
  links, mirrors, `.torrent` files or magnet links (`SourceType`). Each
  `DownloadSource` has a `SourcePriority`, an optional region, a speed rating
  that is clamped to 1..10, and a verified flag. `selection_score()` ranks
  sources. Sorting a list of sources puts the best one first.
  `SourceCollection` keeps sources in that order. It can filter them by type,
  priority, region, verification or minimum speed. Its `best_by_method()`
  returns a `BestSources` with the best source of each type.
- **`isod.versions`**: `VersionInfo` describes a release. Versions order by
  release type first (LTS above Stable above RC, Beta, Alpha, Weekly, Daily,
  Snapshot), then by the numbers in the version string. Versions can be found
  by several detectors:
  - `FeedVersionDetector` matches a regex against an RSS/Atom feed and keeps
    at most 20 results.
  - `GitHubVersionDetector` reads a repository's releases.
  - `WebScrapingDetector` matches a regex against a web page.
  - `ApiVersionDetector` reads a JSON array. It only understands paths of
    the form `$.field`.
  - `StaticVersionDetector` holds a fixed list.
  - `CompositeVersionDetector` merges the results of several detectors. It
    logs and skips any detector that fails.

  The helpers `github`, `rss_feed`, `web_scraper`, `api`, `static_versions`
  and `composite` build these detectors. Failures raise
  `VersionDetectionError`.
- **`isod.definition`**: `DistroDefinition` describes a distribution: its
  architectures, variants, version detector, download sources with URL
  placeholders, filename pattern and checksum URLs. `IsoInfo` describes one
  concrete image. `str(info)` gives `distro-version-arch[-variant].iso`.
- **`isod.distros.arch`**: `create_definition()` returns the built-in Arch
  Linux definition.
- **`isod.usb`**: `UsbManager` finds mounted volumes and detects which ones
  have Ventoy installed. It validates a device and keeps track of the
  selected device. It can also poll in the background for devices that are
  added or removed.

## Installation

```
pip install isod
```

## Usage

### Ranking download sources

```python
from isod.sources import DownloadSource, SourceCollection, SourcePriority

sources = SourceCollection([
    DownloadSource.direct("https://example.com/a.iso", SourcePriority.HIGH),
    DownloadSource.mirror("https://example.com/b.iso", SourcePriority.PREFERRED, "EU")
        .with_speed_rating(9),
])
print(sources.best_source())   # Mirror (Preferred) [EU]
print(sources.by_region("EU"))
```

### Detecting versions

```python
import asyncio
from isod.distros import arch

async def main():
    definition = arch.create_definition()
    versions = await definition.version_detector.detect_versions()
    for version in versions:
        print(version)
    print(await definition.version_detector.latest_stable())

asyncio.run(main())
```

If the network cannot be reached, the online detectors are skipped. The
result then falls back to the fixed list of known releases.

### Finding Ventoy devices

```python
from isod.usb import UsbManager, UsbError

manager = UsbManager()                 # or UsbManager(search_roots=["/media"])
for device in manager.find_ventoy_devices():
    print(device.mount_point, device.ventoy_version)

try:
    manager.select_device(device.device_path)
    print(manager.iso_directory(), manager.available_space())
except UsbError as exc:
    print("cannot use device:", exc)
```

`select_device` requires the following:

- the device is one that was seen in the last scan;
- it has `ventoy/ventoy.json`;
- it is writable;
- it has at least 100 MB free.

`await manager.start_monitoring()` returns an `asyncio.Queue` of `UsbEvent`
items. Each item has a kind from `UsbEventKind`. Polling runs until
`await manager.stop_monitoring()` is called.

## What it does not do

- It has no registry that gathers distribution definitions. So there is no
  lookup by name, no search, and no resolution of a
  distro/version/arch/variant into an `IsoInfo` with a filename and download
  URLs. Code that uses the package has to do this itself.
- Arch Linux is the only built-in distribution definition.
- It does not fetch checksums, download images or copy them to a device.
- There is no command-line program.

## Running the tests

```
pip install -e .[test]
pytest
```