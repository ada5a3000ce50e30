"""Module that frames commands and responses over an interactive smbclient session."""

from enum import auto, Enum
import threading
import time
from typing import Callable, Iterable, List, Optional

import fasteners

from smbpipe import constants
import smbpipe.errors as errors
from smbpipe.logger import log, summarize, summarize_lines
from smbpipe.parser import Parser
from smbpipe.session.process import Credentials, DescriptorRole, Marker, ProcessSession

SpawnFunction = Callable[[List[str], Iterable[DescriptorRole], float], ProcessSession]


class State(Enum):
    """Lifecycle of the interactive session owned by a connection."""

    UNCONNECTED = auto()
    CONNECTING = auto()
    READY = auto()
    INVALID = auto()


class Connection:
    """
    Command/response framing over a single interactive smbclient session.

    smbclient prints its prompt whenever it's ready for the next command, so every
    response is exactly the output between two prompts. The prompt that ends the
    previous response (or the greeting, for the first command) is the one that marks
    the start of the next, which is why commands must be issued strictly one at a time:
    a command is only written once the full response to the previous one, including its
    trailing prompt, has been consumed.

    The session is (re)started lazily before a command whenever it isn't ready. Any
    failure to read a response leaves the connection INVALID, and the only way out of
    that state is a new session on the next command.
    """

    def __init__(
        self,
        command: List[str],
        credentials: Credentials,
        parser: Parser,
        timeout: float = constants.DEFAULT_TIMEOUT,
        spawn: SpawnFunction = ProcessSession.spawn,
    ):
        """Instantiate a connection that starts sessions with the given argument line."""
        self._command = command
        self._credentials = credentials
        self._parser = parser
        self._timeout = timeout
        self._spawn = spawn

        self._session: Optional[ProcessSession] = None
        self._state = State.UNCONNECTED

        self._lock = threading.RLock()

    @property
    def state(self) -> State:
        return self._state

    def is_ready(self) -> bool:
        """Check if a command can be issued without starting a new session."""
        return (
            self._state == State.READY
            and self._session is not None
            and self._session.is_valid()
        )

    @fasteners.locked
    def connect(self) -> None:
        """Start a new session unless the current one is still usable."""
        if self.is_ready():
            return

        if self._session is not None:
            log.debug("replacing invalid smbclient session")
            self._invalidate()

        self._state = State.CONNECTING

        try:
            session = self._spawn(
                self._command, [DescriptorRole.CREDENTIALS], self._timeout
            )
        except errors.ConnectionError:
            self._state = State.INVALID
            raise

        try:
            session.write_credentials(self._credentials)

            # Everything up to the first prompt is the greeting
            greeting = self._read_response(session)
            self._parser.check_connection_error(greeting)
        except errors.ConnectionError as e:
            session.close()
            self._state = State.INVALID

            # A client that quits right away usually explains why in its output
            self._parser.check_connection_error(e.output)
            raise

        self._session = session
        self._state = State.READY

        log.debug(f"smbclient session {session.pid} ready")

    @fasteners.locked
    def execute(self, command: str) -> List[str]:
        """
        Issue a single command and return its response lines.

        The lines are returned as printed without any interpretation. Errors can only be
        detected by passing them through the parser.
        """
        if "\n" in command or "\r" in command:
            raise ValueError(f"command may not contain line breaks: {command!r}")

        self.connect()

        session = self._session
        assert session is not None

        t_call = time.time()

        try:
            session.write_line(command)
            lines = self._read_response(session)
        except errors.ConnectionError as e:
            self._invalidate()

            self._parser.check_connection_error(e.output)
            raise

        t_millis = round((time.time() - t_call) * 1000)
        log.debug(
            f"smb::{summarize(command)} - {t_millis} ms - {summarize_lines(lines)}"
        )

        return lines

    @fasteners.locked
    def close(self) -> None:
        """Terminate the current session, if any."""
        if self._session is not None:
            self._invalidate()

    def _invalidate(self) -> None:
        """Tear down the current session and mark the connection as unusable."""
        session, self._session = self._session, None
        self._state = State.INVALID

        if session is not None:
            session.close(terminate=True)

    @staticmethod
    def _read_response(session: ProcessSession) -> List[str]:
        """Read output lines up to the next prompt."""
        lines: List[str] = []

        try:
            while True:
                token = session.read_token()

                if token is Marker.PROMPT:
                    return lines
                elif isinstance(token, str):
                    lines.append(token)
        except errors.ConnectionError as e:
            # Keep what was printed before the session went away for classification
            e.output = lines + e.output
            raise
