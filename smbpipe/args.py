"""Module defining the command-line arguments and providing a parser for them."""

from __future__ import annotations

import argparse
from typing import List, Optional, Tuple

from smbpipe.constants import VERSION

# Command name and the names of its positional arguments
COMMANDS = {
    "ls": ["path"],
    "stat": ["path"],
    "mkdir": ["path"],
    "rmdir": ["path"],
    "rm": ["path"],
    "mv": ["source", "target"],
    "get": ["source", "target"],
    "put": ["source", "target"],
    "cat": ["path"],
    "attrib": ["path", "mode"],
    "shares": [],
}


class Arguments(argparse.Namespace):
    """Parsed command-line arguments."""

    target: Tuple[str, Optional[str]]
    command: str
    args: List[str]

    user: Optional[str]
    password: Optional[str]
    workgroup: Optional[str]
    timezone: Optional[str]

    config: str

    debug: bool
    timeout: Optional[float]

    @property
    def host(self) -> str:
        return self.target[0]

    @property
    def share(self) -> Optional[str]:
        return self.target[1]

    @classmethod
    def parse(cls, args: Optional[List[str]] = None) -> Arguments:
        """
        Parse command-line arguments from the given list of strings.

        Defaults to sys.argv if none are specified.
        """
        parser = cls._get_parser()
        parsed = parser.parse_args(args, namespace=cls())

        expected = COMMANDS[parsed.command]

        # attrib without a mode clears all attributes
        if parsed.command == "attrib" and len(parsed.args) == 1:
            parsed.args.append("")

        if len(parsed.args) != len(expected):
            usage = " ".join(expected)
            parser.error(f"usage: {parsed.command} {usage}".strip())

        if parsed.command != "shares" and parsed.share is None:
            parser.error(f"{parsed.command} needs a share (//host/share)")

        return parsed

    @classmethod
    def _get_parser(cls) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description="Access an SMB share through smbclient.",
            usage="smbpipe [option...] //host/share command [arg...]",
        )

        parser.add_argument(
            "--version",
            action="version",
            version=f"%(prog)s {VERSION}",
            help="show the program version",
        )

        # Primary arguments
        parser.add_argument(
            "target", type=cls._parse_target, help="share to access (//host/share)"
        )
        parser.add_argument(
            "command", type=str, choices=sorted(COMMANDS), help="operation to perform"
        )
        parser.add_argument(
            "args", type=str, nargs=argparse.REMAINDER, help="arguments for command"
        )

        # Credentials, the password is read from the config file or prompted otherwise
        parser.add_argument("--user", "-U", type=str, help="user to log in as")
        parser.add_argument("--password", type=str, help=argparse.SUPPRESS)
        parser.add_argument("--workgroup", "-W", type=str, help="workgroup or domain")

        # Server properties
        parser.add_argument(
            "--timezone",
            type=str,
            help="time zone of the server, e.g. Europe/Amsterdam or +0100",
        )

        # Path to (optional) config file
        parser.add_argument(
            "--config",
            type=str,
            help="path to config file (default is ~/.smbpipe/config)",
            default="~/.smbpipe/config",
        )

        # Enable debug output for development
        parser.add_argument(
            "--debug", action="store_true", help="enable debug information"
        )

        # Override the configured client timeout
        parser.add_argument(
            "--timeout",
            type=cls._parse_timeout,
            help="seconds to wait for output from smbclient",
        )

        return parser

    @staticmethod
    def _parse_target(arg: str) -> Tuple[str, Optional[str]]:
        parts = arg.replace("\\", "/").strip("/").split("/")

        if not parts[0] or len(parts) > 2 or (len(parts) == 2 and not parts[1]):
            raise argparse.ArgumentTypeError("expected //host/share or //host")

        return parts[0], parts[1] if len(parts) == 2 else None

    @staticmethod
    def _parse_timeout(arg: str) -> float:
        try:
            val = float(arg)
            assert val > 0
            return val
        except (ValueError, AssertionError):
            raise argparse.ArgumentTypeError("expected number > 0")
