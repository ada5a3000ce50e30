"""Module with the host-level operations and the properties shared by its shares."""

from __future__ import annotations

from datetime import tzinfo
import itertools
import re
import subprocess
from typing import Dict, Optional

from dateutil import tz
import semver

from smbpipe import constants
from smbpipe.config import Config
import smbpipe.errors as errors
from smbpipe.logger import log
from smbpipe.parser import Parser
from smbpipe.session import commands
from smbpipe.session.process import Credentials, DescriptorRole, ProcessSession
from smbpipe.share import Share

# "+0100" or "-0530", as printed by `net time zone`
_UTC_OFFSET = re.compile(r"^([+-])(\d{2}):?(\d{2})$")

_VERSION = re.compile(r"(\d+)\.(\d+)\.(\d+)")


def parse_timezone(value: str) -> Optional[tzinfo]:
    """Turn a zone name ("Europe/Amsterdam") or UTC offset ("+0100") into a tzinfo."""
    value = value.strip()
    match = _UTC_OFFSET.match(value)

    if match:
        sign, hours, minutes = match.groups()
        offset = (int(hours) * 60 + int(minutes)) * 60

        return tz.tzoffset(None, -offset if sign == "-" else offset)
    elif value:
        return tz.gettz(value)
    else:
        return None


class Server:
    """
    A host with the credentials that are used for all of its shares.

    Example:
    ```
    server = Server("fileserver", "alice", "secret")

    with server.get_share("documents") as share:
        for entry in share.dir("/reports"):
            print(entry.name, entry.size)
    ```
    """

    def __init__(
        self,
        host: str,
        user: str,
        password: Optional[str] = None,
        workgroup: Optional[str] = None,
        timezone: Optional[str] = None,
        config: Optional[Config] = None,
    ):
        """Instantiate a server, with configured defaults for anything not given."""
        self.config = config or Config()

        self.host = host
        self.credentials = Credentials(
            user=user,
            password=password if password is not None else self.config.server.password,
            workgroup=workgroup or self.config.server.workgroup,
        )

        self._timezone_name = timezone or self.config.server.timezone
        self._timezone: Optional[tzinfo] = None

    @property
    def client(self):
        return self.config.client

    def get_share(self, name: str) -> Share:
        """Get an (unconnected) share on this server."""
        return Share(self, name)

    def list_shares(self) -> Dict[str, str]:
        """List the names and comments of the disk shares on this server."""
        command = commands.list_shares_command(self.client.binary, self.host)

        session = ProcessSession.spawn(
            command, [DescriptorRole.CREDENTIALS], self.client.timeout
        )

        try:
            session.write_credentials(self.credentials)
            lines = session.read_all()
        finally:
            session.close()

        parser = Parser(self.get_timezone())

        # Newer clients report a failed SMB1 workgroup lookup after the share list,
        # which is harmless
        head = list(itertools.takewhile(lambda line: "|" not in line, lines))
        parser.check_connection_error(head)
        parser.check_for_error(head, self.host)

        return parser.parse_shares(lines)

    def get_timezone(self) -> tzinfo:
        """
        Determine the time zone that timestamps printed by the client are in.

        A configured zone is used as-is. Otherwise the server is asked for its offset,
        falling back to the local time zone if that fails.
        """
        if self._timezone is not None:
            return self._timezone

        if self._timezone_name:
            configured = parse_timezone(self._timezone_name)

            if configured is None:
                raise ValueError(f"unknown time zone '{self._timezone_name}'")

            self._timezone = configured
        else:
            self._timezone = self._detect_timezone() or tz.tzlocal()

        return self._timezone

    def _detect_timezone(self) -> Optional[tzinfo]:
        """Ask the server for its UTC offset using `net time zone`."""
        command = [self.client.net_binary, "time", "zone", "-S", self.host]

        try:
            result = subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=self.client.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            log.warning(f"failed to detect time zone of {self.host}: {e}")
            return None

        output = result.stdout.decode(errors="replace").strip()

        if result.returncode != 0 or not _UTC_OFFSET.match(output):
            log.warning(f"failed to detect time zone of {self.host}: {output}")
            return None

        log.debug(f"time zone of {self.host} is {output}")

        return parse_timezone(output)

    def client_version(self) -> semver.VersionInfo:
        """Get the version of the installed smbclient."""
        try:
            result = subprocess.run(
                [self.client.binary, "--version"],
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=self.client.timeout,
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise errors.ConnectionError(f"failed to run {self.client.binary}: {e}")

        output = result.stdout.decode(errors="replace")
        match = _VERSION.search(output)

        if not match:
            raise errors.ConnectionError(f"unrecognized client version '{output}'")

        return semver.VersionInfo(*[int(part) for part in match.groups()])

    def check_client(self) -> None:
        """Make sure that the installed smbclient supports what smbpipe relies on."""
        version = self.client_version()
        minimum = semver.VersionInfo.parse(constants.MIN_CLIENT_VERSION)

        if version < minimum:
            raise errors.ConnectionError(
                f"{self.client.binary} {version} is too old (need {minimum})"
            )
