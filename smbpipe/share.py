"""Module that exposes file system operations on a single share."""

from __future__ import annotations

import io
import threading
from typing import List, TYPE_CHECKING

import fasteners

import smbpipe.errors as errors
from smbpipe.fileinfo import FileInfo, Mode
from smbpipe.parser import format_mode, Parser
from smbpipe.session import commands, Connection, RawTransferSession
from smbpipe.session.commands import escape_local_path, escape_path

if TYPE_CHECKING:
    from smbpipe.server import Server


class Share:
    """
    File system operations on a share, translated into smbclient commands.

    Metadata and management operations go through one interactive session that is
    (re)connected lazily. Every response is checked for errors before an operation is
    considered successful, since smbclient never explicitly reports success.

    read() and write() each start a raw transfer session of their own, so they can be
    used concurrently with each other and with other operations. All other operations
    are serialized.
    """

    def __init__(self, server: Server, name: str):
        """Instantiate a share on the server. No connection is made until it's used."""
        self.server = server
        self.name = name

        self._parser = Parser(server.get_timezone())
        self._connection = Connection(
            commands.interactive_command(server.client.binary, server.host, name),
            server.credentials,
            self._parser,
            server.client.timeout,
        )

        self._lock = threading.RLock()

    def __enter__(self) -> Share:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @fasteners.locked
    def close(self) -> None:
        """Stop the interactive session. The share can still be used afterwards."""
        self._connection.close()

    #
    # Metadata access
    #

    @fasteners.locked
    def dir(self, path: str) -> List[FileInfo]:
        """List the contents of a directory."""
        output = self._connection.execute(f"cd {escape_path(path)}")
        self._parser.check_for_error(output, path)

        try:
            output = self._connection.execute("dir")
            self._parser.check_for_error(output, path)
        finally:
            # Relative paths in later commands are resolved against the root
            if self._connection.is_ready():
                self._connection.execute("cd /")

        return self._parser.parse_dir(output, path)

    @fasteners.locked
    def stat(self, path: str) -> FileInfo:
        """
        Get the size, modification time and attributes of a file or directory.

        Successful allinfo output may still report optional details (alternate name,
        streams) as unsupported, so it is only checked for errors when it doesn't
        contain the information itself.
        """
        output = self._connection.execute(f"allinfo {escape_path(path)}")

        if len(output) < 3:
            self._parser.check_for_error(output, path)

        try:
            record = self._parser.parse_stat(output)
        except errors.CommandError as e:
            self._parser.check_for_error(output, path)
            raise errors.CommandError(e.message, path, output) from None

        return FileInfo.from_stat(path, record)

    #
    # File system structure
    #

    def mkdir(self, path: str) -> None:
        """Create a directory."""
        self._simple_command("mkdir", path)

    def rmdir(self, path: str) -> None:
        """Remove an empty directory."""
        self._simple_command("rmdir", path)

    @fasteners.locked
    def delete(self, path: str) -> None:
        """
        Delete a file.

        smbclient reports a directory as not found when trying to delete it, so a not
        found error is double checked by listing the path. If that works, or fails for
        another reason, then the path is not a missing file but of the wrong type.
        """
        try:
            self._simple_command("del", path)
        except errors.NotFoundError as e:
            try:
                self._simple_command("ls", path)
            except errors.NotFoundError:
                raise e
            except errors.CommandError:
                raise errors.InvalidTypeError("not a file", path) from e

            raise errors.InvalidTypeError("not a file", path) from e

    @fasteners.locked
    def rename(self, source: str, target: str) -> None:
        """Rename or move a file or directory within the share."""
        output = self._connection.execute(
            f"rename {escape_path(source)} {escape_path(target)}"
        )

        try:
            self._parser.check_for_error(output, source)
        except errors.AlreadyExistsError as e:
            raise errors.AlreadyExistsError(e.message, target, e.output) from None

    @fasteners.locked
    def set_mode(self, path: str, mode: Mode) -> None:
        """
        Set the readonly, hidden, system and archive attributes.

        Attributes that are not in the mode are cleared.
        """
        self._simple_command("setmode", path, "-rsha")

        letters = format_mode(mode)

        if letters:
            self._simple_command("setmode", path, f"+{letters}")

    #
    # Contents
    #

    @fasteners.locked
    def put(self, source: str, target: str) -> None:
        """Upload a local file."""
        output = self._connection.execute(
            f"put {escape_local_path(source)} {escape_path(target)}"
        )
        self._parser.check_for_error(output, target)

    @fasteners.locked
    def get(self, source: str, target: str) -> None:
        """Download a file to a local path."""
        output = self._connection.execute(
            f"get {escape_path(source)} {escape_local_path(target)}"
        )
        self._parser.check_for_error(output, source)

    def read(self, path: str) -> io.BufferedReader:
        """Open a stream with the contents of a file."""
        stream = self._raw_session().open_for_download(path)

        return io.BufferedReader(stream)

    def write(self, path: str) -> io.BufferedWriter:
        """
        Open a stream that replaces the contents of a file.

        Closing the stream blocks until the file is completely written, and raises
        errors.CommandError if the upload was rejected.
        """
        stream = self._raw_session().open_for_upload(path)

        return io.BufferedWriter(stream)

    def _raw_session(self) -> RawTransferSession:
        return RawTransferSession(
            self.server.client.binary,
            self.server.host,
            self.name,
            self.server.credentials,
            self.server.client.timeout,
        )

    @fasteners.locked
    def _simple_command(self, command: str, path: str, *args: str) -> None:
        """Run a command on a single path and check its output for errors."""
        line = " ".join([command, escape_path(path), *args])

        output = self._connection.execute(line)
        self._parser.check_for_error(output, path)
