"""Data structures describing entries on a share."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import auto, Enum, IntFlag
import posixpath


class Mode(IntFlag):
    """DOS attribute flags as reported by smbclient."""

    READONLY = 0x01
    HIDDEN = 0x02
    SYSTEM = 0x04
    VOLUME_ID = 0x08
    DIRECTORY = 0x10
    ARCHIVE = 0x20
    NORMAL = 0x80


class Kind(Enum):
    """Type of a share entry."""

    FILE = auto()
    DIRECTORY = auto()


@dataclass(frozen=True)
class StatRecord:
    """Result of parsing the verbose information of a single entry."""

    size: int
    mtime: datetime
    mode: Mode


@dataclass(frozen=True)
class FileInfo:
    """A directory entry or the result of a stat call."""

    path: str
    name: str
    size: int
    mtime: datetime
    mode: Mode

    @staticmethod
    def from_stat(path: str, record: StatRecord) -> FileInfo:
        """Instantiate for the given path from a parsed stat record."""
        return FileInfo(
            path=path,
            name=posixpath.basename(path.rstrip("/")),
            size=record.size,
            mtime=record.mtime,
            mode=record.mode,
        )

    @property
    def kind(self) -> Kind:
        # The directory flag wins, whatever the size field says
        if self.mode & Mode.DIRECTORY:
            return Kind.DIRECTORY
        else:
            return Kind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind == Kind.DIRECTORY

    @property
    def is_readonly(self) -> bool:
        return bool(self.mode & Mode.READONLY)

    @property
    def is_hidden(self) -> bool:
        return bool(self.mode & Mode.HIDDEN)

    @property
    def is_system(self) -> bool:
        return bool(self.mode & Mode.SYSTEM)

    @property
    def is_archived(self) -> bool:
        return bool(self.mode & Mode.ARCHIVE)
