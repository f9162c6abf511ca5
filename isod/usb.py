"""Discovery and selection of mounted USB drives carrying a Ventoy installation."""

from __future__ import annotations

import asyncio
import contextlib
import enum
import json
import logging
import shutil
import string
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

_LINUX_MOUNT_ROOTS = (Path("/media"), Path("/mnt"), Path("/run/media"))
_MACOS_VOLUMES = Path("/Volumes")
_REQUIRED_SPACE = 100 * 1024 * 1024
_SPACE_PROBE = ".space_test_isod"
_WRITE_PROBE = ".isod_write_test"


class UsbError(Exception):
    """Raised when a device cannot be found, used or validated."""


@dataclass
class UsbDevice:
    """A mounted volume that may be a USB drive."""

    device_path: Path
    mount_point: Optional[Path] = None
    label: Optional[str] = None
    filesystem: str = "unknown"
    total_space: int = 0
    available_space: int = 0
    is_ventoy: bool = False
    ventoy_version: Optional[str] = None
    last_seen: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class UsbEventKind(enum.Enum):
    """What happened to a device."""

    DEVICE_ADDED = "added"
    DEVICE_REMOVED = "removed"
    DEVICE_UPDATED = "updated"
    VENTOY_DETECTED = "ventoy_detected"


@dataclass(frozen=True)
class UsbEvent:
    """A change seen while monitoring; removals carry only the path."""

    kind: UsbEventKind
    device_path: str
    device: Optional[UsbDevice] = None


def _subdirectories(path: Path) -> list[Path]:
    return [entry for entry in path.iterdir() if entry.is_dir()]


def _linux_style_mounts(roots: Iterable[Path]) -> list[Path]:
    """Mounts one or two levels below the roots (``/media/<user>/<label>``)."""
    mounts: list[Path] = []
    for root in roots:
        if not root.exists():
            continue
        try:
            entries = _subdirectories(root)
        except OSError:
            continue
        for entry in entries:
            try:
                mounts.extend(_subdirectories(entry))
            except OSError:
                mounts.append(entry)
    return mounts


def _windows_drives() -> list[Path]:
    drives = []
    for letter in string.ascii_uppercase:
        drive = Path(f"{letter}:\\")
        if letter != "C" and drive.exists():
            drives.append(drive)
    return drives


def _macos_volumes() -> list[Path]:
    if not _MACOS_VOLUMES.exists():
        return []
    try:
        entries = _subdirectories(_MACOS_VOLUMES)
    except OSError:
        return []
    return [entry for entry in entries if "Macintosh" not in entry.name]


def _is_writable(directory: Path, probe_name: str) -> bool:
    probe = directory / probe_name
    try:
        probe.write_text("test")
    except OSError:
        return False
    with contextlib.suppress(OSError):
        probe.unlink()
    return True


def _space_info(path: Path) -> tuple[int, int]:
    """Total and available bytes; nothing is available where we cannot write."""
    usage = shutil.disk_usage(path)
    available = usage.free if _is_writable(path, _SPACE_PROBE) else 0
    return usage.total, available


def _check_ventoy_installation(device: UsbDevice) -> None:
    """Mark the device as Ventoy and read its version, or raise UsbError."""
    if device.mount_point is None:
        raise UsbError("Device is not mounted")
    ventoy_json = device.mount_point / "ventoy" / "ventoy.json"
    if not ventoy_json.exists():
        raise UsbError("No Ventoy installation found")
    try:
        config = json.loads(ventoy_json.read_text())
    except (OSError, ValueError):
        config = None
    if isinstance(config, dict):
        version = config.get("VENTOY_VERSION")
        device.ventoy_version = version if isinstance(version, str) else None
    device.is_ventoy = True


def _device_from_mount(mount_path: Path) -> UsbDevice:
    try:
        is_dir = mount_path.stat() is not None and mount_path.is_dir()
    except OSError as exc:
        raise UsbError(f"Failed to access mount point: {exc}") from exc
    if not is_dir:
        raise UsbError("Mount point is not a directory")

    name = mount_path.name
    label = name if name and name not in ("/", "\\") else None
    try:
        total, available = _space_info(mount_path)
    except OSError:
        total, available = 0, 0

    device = UsbDevice(
        device_path=mount_path,
        mount_point=mount_path,
        label=label,
        total_space=total,
        available_space=available,
    )
    with contextlib.suppress(UsbError):
        _check_ventoy_installation(device)
    return device


class UsbManager:
    """Finds candidate USB volumes, validates Ventoy ones and tracks a selection.

    ``search_roots`` replaces the platform's usual mount locations; each root
    is searched the way ``/media`` is on Linux.
    """

    poll_interval: float = 2.0

    def __init__(self, search_roots: Optional[Iterable[Path | str]] = None) -> None:
        self._search_roots = (
            None if search_roots is None else [Path(root) for root in search_roots]
        )
        self._detected: dict[str, UsbDevice] = {}
        self._current: Optional[UsbDevice] = None
        self._events: Optional[asyncio.Queue[UsbEvent]] = None
        self._monitoring = False
        self._monitor_task: Optional[asyncio.Task[None]] = None

    def _potential_mounts(self) -> list[Path]:
        if self._search_roots is not None:
            return _linux_style_mounts(self._search_roots)
        if sys.platform.startswith("linux"):
            return _linux_style_mounts(_LINUX_MOUNT_ROOTS)
        if sys.platform == "win32":
            return _windows_drives()
        if sys.platform == "darwin":
            return _macos_volumes()
        return []

    def _discover(self) -> list[UsbDevice]:
        devices = []
        for mount in self._potential_mounts():
            with contextlib.suppress(UsbError):
                devices.append(_device_from_mount(mount))
        return devices

    def scan_devices(self) -> list[UsbDevice]:
        """Scan mounted volumes and remember what was found."""
        devices = self._discover()
        self._detected = {str(device.device_path): device for device in devices}
        logger.info("Found %d potential USB devices", len(devices))
        return devices

    def find_ventoy_devices(self) -> list[UsbDevice]:
        """Scanned devices that have Ventoy installed."""
        ventoy_devices = []
        for device in self.scan_devices():
            try:
                _check_ventoy_installation(device)
            except UsbError:
                continue
            ventoy_devices.append(device)
        logger.info("Found %d Ventoy devices", len(ventoy_devices))
        return ventoy_devices

    def validate_ventoy_device(self, device: UsbDevice) -> None:
        """Raise UsbError unless the device is a usable, writable Ventoy drive."""
        if not device.is_ventoy:
            raise UsbError("Device is not a Ventoy installation")
        mount_point = device.mount_point
        if mount_point is None:
            raise UsbError("Device is not mounted")

        ventoy_dir = mount_point / "ventoy"
        if not ventoy_dir.exists():
            raise UsbError("Ventoy directory not found")
        if not (ventoy_dir / "ventoy.json").exists():
            raise UsbError("Ventoy configuration file not found")
        if not _is_writable(mount_point, _WRITE_PROBE):
            raise UsbError("No write permission to device")

        try:
            _, available = _space_info(mount_point)
        except OSError:
            available = device.available_space
        if available < _REQUIRED_SPACE:
            raise UsbError(
                f"Insufficient free space (need at least {_REQUIRED_SPACE // (1024 * 1024)} MB, "
                f"found {available // (1024 * 1024)} MB)"
            )

    def select_device(self, device_path: str | Path) -> None:
        """Make a previously detected Ventoy device the current one."""
        key = str(device_path)
        device = self._detected.get(key)
        if device is None:
            raise UsbError("Device not found in detected devices")
        self.validate_ventoy_device(device)
        self._current = device
        logger.info("Selected device: %s (%s)", key, device.label or "unlabeled")
        if self._events is not None:
            self._events.put_nowait(UsbEvent(UsbEventKind.VENTOY_DETECTED, key, device))

    def current_device(self) -> Optional[UsbDevice]:
        return self._current

    def refresh_current_device(self) -> None:
        """Rescan and reselect the current device, if there is one."""
        if self._current is None:
            return
        path = str(self._current.device_path)
        self.scan_devices()
        self.select_device(path)

    def _require_current(self) -> UsbDevice:
        if self._current is None:
            raise UsbError("No device currently selected")
        return self._current

    def _require_mounted(self) -> Path:
        mount_point = self._require_current().mount_point
        if mount_point is None:
            raise UsbError("Current device is not mounted")
        return mount_point

    def available_space(self) -> int:
        """Free bytes on the current device."""
        device = self._require_current()
        if device.mount_point is None:
            return device.available_space
        try:
            return _space_info(device.mount_point)[1]
        except OSError:
            return device.available_space

    def iso_directory(self) -> Path:
        """Where ISO images live on the current device."""
        return self._require_mounted() / "iso"

    def create_isod_metadata_dir(self) -> Path:
        """Create and return the metadata directory on the current device."""
        metadata_dir = self._require_mounted() / "isod"
        try:
            metadata_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise UsbError(f"Failed to create metadata directory: {metadata_dir}: {exc}") from exc
        return metadata_dir

    async def start_monitoring(self) -> asyncio.Queue[UsbEvent]:
        """Poll for devices in the background; events arrive on the returned queue."""
        if self._monitoring:
            raise UsbError("Already monitoring device changes")
        queue: asyncio.Queue[UsbEvent] = asyncio.Queue()
        self._events = queue
        self._monitoring = True
        self._monitor_task = asyncio.get_running_loop().create_task(self._monitor(queue))
        logger.info("Started USB device monitoring")
        return queue

    async def _monitor(self, queue: asyncio.Queue[UsbEvent]) -> None:
        last: dict[str, UsbDevice] = {}
        while self._monitoring:
            try:
                devices = await asyncio.to_thread(self._discover)
            except OSError as exc:
                logger.debug("Device scan failed: %s", exc)
            else:
                current = {str(device.device_path): device for device in devices}
                for path, device in current.items():
                    if path not in last:
                        logger.info("New device detected: %s", path)
                        queue.put_nowait(UsbEvent(UsbEventKind.DEVICE_ADDED, path, device))
                for path in last:
                    if path not in current:
                        logger.info("Device removed: %s", path)
                        queue.put_nowait(UsbEvent(UsbEventKind.DEVICE_REMOVED, path))
                self._detected = dict(current)
                last = current
            await asyncio.sleep(self.poll_interval)

    async def stop_monitoring(self) -> None:
        """Stop the background polling started by start_monitoring."""
        self._monitoring = False
        task, self._monitor_task = self._monitor_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        logger.info("Stopped USB device monitoring")

    def active_downloads(self) -> list[str]:
        return []