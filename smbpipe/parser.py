"""
Module that turns the text output of smbclient into typed results and errors.

smbclient has no formal output grammar and, more importantly, no explicit success
marker. A command succeeded if and only if its output contains none of the known failure
strings, so every response is run through check_for_error() before it's used. The
failure strings live in a single table (ERROR_TABLE) that is versioned, since changes in
smbclient's phrasing only need to be handled there.
"""

from datetime import datetime, tzinfo
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Type

from dateutil import parser as date_parser

import smbpipe.errors as errors
from smbpipe.fileinfo import FileInfo, Mode, StatRecord

# Bump when the semantics of ERROR_TABLE change.
ERROR_TABLE_VERSION = 2

# Known failure substrings and the error they map to. The first match wins.
ERROR_TABLE: Tuple[Tuple[str, Type[errors.Error]], ...] = (
    # Connection level
    ("NT_STATUS_LOGON_FAILURE", errors.AuthenticationError),
    ("NT_STATUS_ACCOUNT_DISABLED", errors.AuthenticationError),
    ("NT_STATUS_BAD_NETWORK_NAME", errors.InvalidHostError),
    ("NT_STATUS_HOST_UNREACHABLE", errors.InvalidHostError),
    ("NT_STATUS_NETWORK_UNREACHABLE", errors.InvalidHostError),
    ("NT_STATUS_UNRECOGNIZED_NAME", errors.InvalidHostError),
    ("NT_STATUS_CONNECTION_REFUSED", errors.ConnectionError),
    ("NT_STATUS_CONNECTION_DISCONNECTED", errors.ConnectionError),
    ("NT_STATUS_IO_TIMEOUT", errors.ConnectionError),
    # Command level
    ("NT_STATUS_OBJECT_NAME_NOT_FOUND", errors.NotFoundError),
    ("NT_STATUS_OBJECT_PATH_NOT_FOUND", errors.NotFoundError),
    ("NT_STATUS_NO_SUCH_FILE", errors.NotFoundError),
    ("NT_STATUS_NOT_FOUND", errors.NotFoundError),
    ("Error opening local file", errors.NotFoundError),
    ("NT_STATUS_OBJECT_NAME_COLLISION", errors.AlreadyExistsError),
    ("NT_STATUS_ACCESS_DENIED", errors.AccessDeniedError),
    ("NT_STATUS_CANNOT_DELETE", errors.AccessDeniedError),
    ("NT_STATUS_DIRECTORY_NOT_EMPTY", errors.NotEmptyError),
    ("NT_STATUS_FILE_IS_A_DIRECTORY", errors.InvalidTypeError),
    ("NT_STATUS_NOT_A_DIRECTORY", errors.InvalidTypeError),
)

# Any other status code except success is still a failure.
_STATUS_CODE = re.compile(r"NT_STATUS_[A-Z0-9_]+")
_SUCCESS_STATUS = "NT_STATUS_OK"

# "Connection to host failed (Error NT_STATUS_...)" without a known status code
_CONNECTION_FAILED = re.compile(r"Connection to \S+ failed")

# Attribute letters as printed by smbclient (and accepted by setmode, in lowercase)
MODE_LETTERS: Dict[str, Mode] = {
    "R": Mode.READONLY,
    "H": Mode.HIDDEN,
    "S": Mode.SYSTEM,
    "V": Mode.VOLUME_ID,
    "D": Mode.DIRECTORY,
    "A": Mode.ARCHIVE,
    "N": Mode.NORMAL,
}

# Listing entries are printed as "  %-30s%7.7s %8.0f  %s" (name, attributes, size and
# modification time), for example:
#   "  report.txt                          A     1024  Mon Jan  1 10:00:00 2024"
# Long names push the other columns to the right without leaving a gap, so an entry is
# taken apart from the end.
_DIR_TAIL = re.compile(
    r"(?P<size>\d+)\s+"
    r"(?P<mtime>[A-Z][a-z]{2}\s+[A-Z][a-z]{2}\s+\d{1,2}\s+\d{1,2}:\d{2}:\d{2}\s+\d{4})"
    r"\s*$"
)
_DIR_INDENT = "  "
_ATTRS_WIDTH = 7
_SIZE_WIDTH = 8
_ATTRS_FIELD = re.compile(r"^ *[A-Z]*$")

# "65536 blocks of size 1024. 12345 blocks available"
_DIR_TRAILER = re.compile(r"\d+ blocks of size \d+\. \d+ blocks available")

# "stream: [::$DATA], 1024 bytes"
_STREAM_SIZE = re.compile(r"\[::\$DATA\],\s*(\d+)\s+bytes")

# "A (20)" or "0x20"
_ATTRIBUTE_HEX = re.compile(r"(?:\(|0x)([0-9a-fA-F]+)\)?")


def parse_mode(letters: str) -> Mode:
    """Turn an attribute letter cluster like "DHA" into mode flags, in any order."""
    mode = Mode(0)

    for letter in letters.upper():
        mode |= MODE_LETTERS.get(letter, Mode(0))

    return mode


def format_mode(mode: Mode) -> str:
    """Turn mode flags into the setmode letters for the settable attributes."""
    settable = [Mode.READONLY, Mode.SYSTEM, Mode.HIDDEN, Mode.ARCHIVE]
    inverse = {flag: letter for letter, flag in MODE_LETTERS.items()}

    return "".join(inverse[flag].lower() for flag in settable if mode & flag)


def split_dir_line(line: str) -> Optional[Tuple[str, str, int, str]]:
    """Split a listing entry into name, attribute letters, size and timestamp."""
    match = _DIR_TAIL.search(line)

    if not match:
        return None

    size = match.group("size")
    head = line[: match.start("size")]

    # Separator between the attributes and the right-aligned size
    end = len(head) - max(0, _SIZE_WIDTH - len(size)) - 1
    attrs = head[end - _ATTRS_WIDTH : end]

    if (
        end - _ATTRS_WIDTH < len(_DIR_INDENT)
        or head[end:].strip()
        or not head.startswith(_DIR_INDENT)
        or not _ATTRS_FIELD.match(attrs)
    ):
        return None

    name = head[len(_DIR_INDENT) : end - _ATTRS_WIDTH].rstrip()

    if not name:
        return None

    return name, attrs.strip(), int(size), match.group("mtime")


def classify(line: str) -> Optional[Tuple[str, Type[errors.Error]]]:
    """Find the known failure string in a single output line, if any."""
    for needle, error_type in ERROR_TABLE:
        if needle in line:
            return needle, error_type

    for status in _STATUS_CODE.findall(line):
        if status != _SUCCESS_STATUS:
            return status, errors.CommandError

    return None


class Parser:
    """
    Stateless translator from smbclient output lines to results.

    Timestamps printed by smbclient carry no reliable zone, so they are interpreted in
    the time zone of the server that the parser is created for.
    """

    def __init__(self, timezone: tzinfo):
        """Instantiate a parser that interprets timestamps in the given zone."""
        self.timezone = timezone

    def check_for_error(self, lines: Sequence[str], path: str = "") -> None:
        """
        Raise the error matching the first recognized failure string.

        Listing lines are never considered failures, so that file names that happen to
        contain a status code don't turn into errors.
        """
        for line in lines:
            if split_dir_line(line):
                continue

            match = classify(line)

            if match:
                needle, error_type = match
                raise error_type(needle, path, lines)

    def check_connection_error(self, lines: Sequence[str]) -> None:
        """Raise a ConnectionError (subclass) if the greeting output reports one."""
        for line in lines:
            match = classify(line)

            if match:
                needle, error_type = match

                if issubclass(error_type, errors.ConnectionError):
                    raise error_type(needle, output=lines)
                else:
                    raise errors.ConnectionError(needle, output=lines)
            elif _CONNECTION_FAILED.search(line):
                raise errors.InvalidHostError(line.strip(), output=lines)

    def parse_time(self, value: str) -> datetime:
        """Parse a timestamp printed by smbclient in the server's time zone."""
        try:
            naive = date_parser.parse(value, ignoretz=True)
        except (ValueError, OverflowError) as e:
            raise errors.CommandError(f"invalid timestamp '{value}' ({e})")

        return naive.replace(tzinfo=self.timezone)

    def parse_dir(self, lines: Iterable[str], base_path: str) -> List[FileInfo]:
        """Parse the output of the dir command into entries, without . and .."""
        entries: List[FileInfo] = []
        base_path = base_path.rstrip("/")

        for line in lines:
            if not line.strip() or _DIR_TRAILER.search(line):
                continue

            entry = split_dir_line(line)

            if not entry:
                continue

            name, attrs, size, mtime = entry

            if name in (".", ".."):
                continue

            entries.append(
                FileInfo(
                    path=f"{base_path}/{name}",
                    name=name,
                    size=size,
                    mtime=self.parse_time(mtime),
                    mode=parse_mode(attrs),
                )
            )

        return entries

    def parse_stat(self, lines: Iterable[str]) -> StatRecord:
        """Parse the key: value output of the allinfo command."""
        lines = list(lines)
        size = 0
        mtime: Optional[datetime] = None
        mode = Mode(0)

        for line in lines:
            if ":" not in line:
                continue

            key, value = line.split(":", 1)
            key = key.strip()
            value = value.strip()

            if key == "write_time":
                mtime = self.parse_time(value)
            elif key == "attributes":
                mode = self._parse_attributes(value)
            elif key == "size":
                size = int(value)
            elif key == "stream":
                match = _STREAM_SIZE.search(value)

                if match:
                    size = int(match.group(1))

        if mtime is None:
            raise errors.CommandError("unrecognized allinfo output", output=lines)

        return StatRecord(size=size, mtime=mtime, mode=mode)

    @staticmethod
    def _parse_attributes(value: str) -> Mode:
        """Parse "DA (30)" style attributes, falling back to the hex value."""
        letters = value.split("(")[0].strip()

        if letters and not letters.startswith("0x"):
            return parse_mode(letters)

        match = _ATTRIBUTE_HEX.search(value)

        if match:
            return Mode(int(match.group(1), 16) & sum(MODE_LETTERS.values()))
        else:
            return Mode(0)

    @staticmethod
    def parse_shares(lines: Iterable[str]) -> Dict[str, str]:
        """Parse the machine readable share list (-g) into names and comments."""
        shares: Dict[str, str] = {}

        for line in lines:
            if "|" not in line:
                continue

            kind, name, *comment = line.strip().split("|")

            if kind.lower() == "disk":
                shares[name] = "|".join(comment)

        return shares
