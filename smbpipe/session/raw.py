"""Module that streams file contents through dedicated single-use smbclient processes."""

from __future__ import annotations

import io
import os
from typing import Callable, Iterable, List, Optional

from smbpipe import constants
import smbpipe.errors as errors
from smbpipe.logger import log
from smbpipe.session import commands
from smbpipe.session.process import Credentials, DescriptorRole, ProcessSession

SpawnFunction = Callable[[List[str], Iterable[DescriptorRole], float], ProcessSession]


class DownloadStream(io.RawIOBase):
    """Readable stream of the bytes written by a client to its download descriptor."""

    def __init__(self, session: ProcessSession):
        """Take ownership of the session and its download descriptor."""
        super().__init__()

        self._session = session
        self._fd = session.take_descriptor(DescriptorRole.DOWNLOAD_OUT)

    def readable(self) -> bool:
        return True

    def fileno(self) -> int:
        return self._fd

    def readinto(self, buffer) -> int:
        view = memoryview(buffer).cast("B")
        data = os.read(self._fd, len(view))

        view[: len(data)] = data

        return len(data)

    def close(self) -> None:
        """Close the descriptor and end the client, whether it finished or not."""
        if self.closed:
            return

        try:
            os.close(self._fd)
            self._session.close(terminate=True)
        finally:
            super().close()


class UploadStream(io.RawIOBase):
    """
    Writable stream to the upload descriptor of a client.

    close() finalizes the upload: it signals the end of the data and then blocks until
    the client has exited, so the file is completely written on the share by the time
    close() returns. A client that exits with an error makes close() raise
    errors.CommandError for the path.
    """

    def __init__(self, session: ProcessSession, path: str = ""):
        """Take ownership of the session and its upload descriptor."""
        super().__init__()

        self.path = path

        self._session = session
        self._fd = session.take_descriptor(DescriptorRole.UPLOAD_IN)

        self.returncode: Optional[int] = None

    def writable(self) -> bool:
        return True

    def fileno(self) -> int:
        return self._fd

    def write(self, data) -> int:
        if self.closed:
            raise ValueError("write to closed upload stream")

        return os.write(self._fd, data)

    def close(self) -> None:
        """Signal the end of the data and wait for the upload to complete."""
        if self.closed:
            return

        try:
            os.close(self._fd)

            # Don't terminate, give the upload the time it needs to finish
            self.returncode = self._session.close(terminate=False)
        finally:
            super().close()

        if self.returncode != 0:
            log.warning(f"upload client exited with code {self.returncode}")

            raise errors.CommandError(
                f"upload failed with exit code {self.returncode}", self.path
            )


class RawTransferSession:
    """
    A single-use client process that transfers one file over an extra descriptor.

    The interactive session cannot interleave raw bytes with its line-oriented output,
    so every streaming read or write gets a process of its own. The process transfers
    exactly one file and the session can't be opened a second time.
    """

    def __init__(
        self,
        binary: str,
        host: str,
        share: str,
        credentials: Credentials,
        timeout: float = constants.DEFAULT_TIMEOUT,
        spawn: SpawnFunction = ProcessSession.spawn,
    ):
        """Prepare a transfer from or to the given share."""
        self._binary = binary
        self._host = host
        self._share = share
        self._credentials = credentials
        self._timeout = timeout
        self._spawn = spawn

        self._used = False

    def open_for_download(self, path: str) -> DownloadStream:
        """Start the client that writes the file at the path to the download fd."""
        command = commands.download_command(
            self._binary, self._host, self._share, path
        )

        session = self._start(command, DescriptorRole.DOWNLOAD_OUT)
        return DownloadStream(session)

    def open_for_upload(self, path: str) -> UploadStream:
        """Start the client that writes the upload fd to the file at the path."""
        command = commands.upload_command(self._binary, self._host, self._share, path)

        session = self._start(command, DescriptorRole.UPLOAD_IN)
        return UploadStream(session, path)

    def _start(self, command: List[str], role: DescriptorRole) -> ProcessSession:
        if self._used:
            raise RuntimeError("a raw transfer session can only be used once")

        self._used = True

        session = self._spawn(command, [DescriptorRole.CREDENTIALS, role], self._timeout)

        try:
            session.write_credentials(self._credentials)
        except Exception:
            session.close()
            raise

        return session
