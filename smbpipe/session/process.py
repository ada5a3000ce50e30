"""Module that owns a single smbclient subprocess and its descriptors."""

from __future__ import annotations

import codecs
import contextlib
import ctypes
from dataclasses import dataclass
from enum import auto, Enum
import fcntl
import os
import select
import signal
import subprocess
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from smbpipe import constants
import smbpipe.errors as errors
from smbpipe.logger import log, summarize


class DescriptorRole(Enum):
    """Extra descriptors that a spawned client can be given, by their number."""

    CREDENTIALS = constants.CREDENTIALS_FD
    UPLOAD_IN = constants.UPLOAD_FD
    DOWNLOAD_OUT = constants.DOWNLOAD_FD

    @property
    def fd(self) -> int:
        """Descriptor number within the child process."""
        return self.value

    @property
    def child_reads(self) -> bool:
        """Whether the child reads from (rather than writes to) the descriptor."""
        return self != DescriptorRole.DOWNLOAD_OUT

    @property
    def proc_path(self) -> str:
        """Path through which the child can open the descriptor."""
        return f"/proc/self/fd/{self.fd}"


class Marker(Enum):
    """Non-text tokens in the output of an interactive session."""

    PROMPT = auto()


@dataclass(frozen=True)
class Credentials:
    """Username, password and optional workgroup for the authentication file."""

    user: str
    password: Optional[str] = None
    workgroup: Optional[str] = None

    def format(self) -> str:
        """Render in the format of smbclient's --authentication-file."""
        content = f"username={self.user}\npassword={self.password or ''}\n"

        if self.workgroup:
            content += f"domain={self.workgroup}\n"

        return content

    def __repr__(self) -> str:
        return f"Credentials(user={self.user!r}, workgroup={self.workgroup!r})"


class ProcessSession:
    """
    A running smbclient process with its standard streams and extra descriptors.

    The child sees the extra descriptors under the fixed numbers of their role, so that
    the argument line can refer to them as /proc/self/fd/N. The parent keeps the other
    end of each pipe until it is written (credentials) or handed off to a stream.

    Output is read as a sequence of tokens, which are either lines of text or the
    interactive prompt. Every read is bounded by the session timeout: a client that
    stops producing output or exits raises errors.ConnectionError instead of blocking
    forever.
    """

    def __init__(
        self,
        process: subprocess.Popen,
        descriptors: Dict[DescriptorRole, int],
        timeout: float = constants.DEFAULT_TIMEOUT,
    ):
        """Wrap an already started process and the parent ends of its descriptors."""
        self._process = process
        self._descriptors = descriptors
        self._timeout = timeout

        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._eof = False

    @classmethod
    def spawn(
        cls,
        command: List[str],
        roles: Iterable[DescriptorRole] = (DescriptorRole.CREDENTIALS,),
        timeout: float = constants.DEFAULT_TIMEOUT,
    ) -> ProcessSession:
        """Start the client with a pipe for each of the given descriptor roles."""
        parent_ends: Dict[DescriptorRole, int] = {}
        child_ends: Dict[DescriptorRole, int] = {}

        try:
            for role in roles:
                read_fd, write_fd = os.pipe()

                if role.child_reads:
                    child_ends[role], parent_ends[role] = read_fd, write_fd
                else:
                    child_ends[role], parent_ends[role] = write_fd, read_fd

            mapping = {role.fd: fd for role, fd in child_ends.items()}
            libc = _libc()

            def preexec_fn() -> None:
                # Terminate the client if smbpipe is terminated
                cls._set_death_signal(libc, signal.SIGTERM)
                cls._map_descriptors(mapping)

            log.debug(f"running {summarize(' '.join(command))}")

            process = subprocess.Popen(
                command,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                # Errors are printed to either stream depending on the client version
                stderr=subprocess.STDOUT,
                preexec_fn=preexec_fn,
                # Keeps the remapped descriptors open in the child
                close_fds=False,
            )
        except Exception as e:
            for fd in parent_ends.values():
                os.close(fd)

            raise errors.ConnectionError(f"failed to start {command[0]}: {e}")
        finally:
            for fd in child_ends.values():
                os.close(fd)

        return cls(process, parent_ends, timeout)

    @staticmethod
    def _map_descriptors(mapping: Dict[int, int]) -> None:
        """
        Install pipe ends under their fixed numbers (runs in the child).

        Sources are moved out of the way first, since a source may already occupy one
        of the target numbers.
        """
        staged = {
            target: fcntl.fcntl(source, fcntl.F_DUPFD, 10)
            for target, source in mapping.items()
        }

        for target, fd in staged.items():
            os.dup2(fd, target)
            os.close(fd)

    # https://stackoverflow.com/a/19448096/238180
    @staticmethod
    def _set_death_signal(libc: Any, sig: signal.Signals) -> int:
        """Set the signal that the current process gets when its parent dies."""
        # https://github.com/torvalds/linux/blob/master/include/uapi/linux/prctl.h#L9
        PR_SET_PDEATHSIG = 1

        return libc.prctl(PR_SET_PDEATHSIG, sig)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.poll()

    #
    # Descriptors
    #

    def write_credentials(self, credentials: Credentials) -> None:
        """Write the credentials to the credentials descriptor and close it."""
        fd = self._descriptors.pop(DescriptorRole.CREDENTIALS, None)

        if fd is None:
            raise RuntimeError("credentials can only be written once per session")

        try:
            with os.fdopen(fd, "wb") as f:
                f.write(credentials.format().encode())
        except OSError as e:
            raise errors.ConnectionError(f"failed to write credentials: {e}")

    def take_descriptor(self, role: DescriptorRole) -> int:
        """Hand over ownership of the parent end of a data descriptor."""
        try:
            return self._descriptors.pop(role)
        except KeyError:
            raise RuntimeError(f"session has no (unclaimed) {role.name} descriptor")

    #
    # Interactive I/O
    #

    def is_valid(self) -> bool:
        """Check if the process is still alive and its streams are open."""
        return (
            self._process.poll() is None
            and self._process.stdin is not None
            and not self._process.stdin.closed
            and self._process.stdout is not None
            and not self._process.stdout.closed
            and not self._eof
        )

    def write_line(self, line: str) -> None:
        """Write a single line of input to the client."""
        if self._process.stdin is None or self._process.stdin.closed:
            raise errors.ConnectionError("session input is closed")

        try:
            self._process.stdin.write((line + "\n").encode())
            self._process.stdin.flush()
        except OSError as e:
            raise errors.ConnectionError(f"failed to write to session: {e}")

    def read_token(self) -> Union[str, Marker]:
        """
        Read the next line of output or the prompt.

        A prompt is only recognized at the start of a line. It is not terminated by a
        line break, so output that follows it on the same line is the next token.
        """
        while True:
            if self._buffer.startswith(constants.PROMPT_PREFIX):
                end = self._buffer.find(constants.PROMPT_SUFFIX)
                newline = self._buffer.find("\n")

                if end >= 0 and (newline < 0 or end < newline):
                    self._buffer = self._buffer[end + len(constants.PROMPT_SUFFIX) :]

                    # A line break right after the prompt carries no output
                    if self._buffer.startswith("\n"):
                        self._buffer = self._buffer[1:]

                    return Marker.PROMPT

            newline = self._buffer.find("\n")

            if newline >= 0:
                line = self._buffer[:newline]
                self._buffer = self._buffer[newline + 1 :]

                return line.rstrip("\r")
            elif self._eof:
                if self._buffer:
                    line, self._buffer = self._buffer, ""
                    return line

                raise errors.ConnectionError("session closed unexpectedly")

            self._fill()

    def read_all(self) -> List[str]:
        """Read the remaining output lines until the client closes its output."""
        lines: List[str] = []

        while True:
            try:
                token = self.read_token()
            except errors.ConnectionError:
                if self._eof:
                    return lines
                else:
                    raise

            if isinstance(token, str):
                lines.append(token)

    def _fill(self) -> None:
        """Read the next chunk of output into the buffer within the timeout."""
        assert self._process.stdout is not None

        fd = self._process.stdout.fileno()
        ready, _, _ = select.select([fd], [], [], self._timeout)

        if not ready:
            raise errors.ConnectionError(
                f"no output from session within {self._timeout} seconds"
            )

        chunk = os.read(fd, 4096)

        if len(chunk) > 0:
            self._buffer += self._decoder.decode(chunk)
        else:
            # End of stream
            self._buffer += self._decoder.decode(b"", final=True)
            self._eof = True

    #
    # Teardown
    #

    def close(self, terminate: bool = True) -> Optional[int]:
        """
        Close the streams and end the process, returning its exit code.

        Without terminate only the input is closed and the process is given all the time
        it needs to exit by itself, which lets a pending upload complete.
        """
        for fd in self._descriptors.values():
            with contextlib.suppress(OSError):
                os.close(fd)

        self._descriptors.clear()

        if terminate:
            self._ignore_process_error(self._process.terminate)()

        if self._process.stdin is not None:
            with contextlib.suppress(OSError):
                self._process.stdin.close()

        try:
            if terminate:
                self._process.wait(timeout=self._timeout)
            else:
                self._process.wait()
        except subprocess.TimeoutExpired:
            log.warning(f"session {self.pid} did not exit, killing it")
            self._ignore_process_error(self._process.kill)()
            self._process.wait()

        if self._process.stdout is not None and not self._process.stdout.closed:
            if not terminate:
                remaining = self._process.stdout.read().decode(errors="replace")

                if remaining.strip():
                    log.debug(f"session {self.pid} output: {summarize(remaining)}")

            self._process.stdout.close()

        return self._process.returncode

    @staticmethod
    def _ignore_process_error(call: Callable[[], Any]) -> Callable[[], None]:
        """
        Workaround for race condition in Popen.terminate/Popen.kill.

        https://bugs.python.org/issue40550
        """

        def wrapper() -> None:
            with contextlib.suppress(ProcessLookupError):
                call()

        return wrapper


def _libc() -> Any:
    """Load the C library before forking, since that isn't safe in the child."""
    return ctypes.CDLL(None)
