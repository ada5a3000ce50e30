"""
Module implementing the command-line interface of smbpipe.

Every invocation performs a single operation on a share, for example:

    smbpipe -U alice //fileserver/documents ls /reports
    smbpipe -U alice //fileserver/documents cat /reports/q1.txt > q1.txt

The password is taken from SMBPIPE_PASSWORD or the config file, or prompted for.
"""

import getpass
import logging
import os
import shutil
import signal
import sys
from typing import List, NoReturn, Optional

import smbpipe.constants as constants
import smbpipe.errors as errors
from smbpipe.config import Config
from smbpipe.fileinfo import FileInfo
from smbpipe.logger import log
from smbpipe.parser import MODE_LETTERS, parse_mode
from smbpipe.server import Server
from .args import Arguments


def main(arguments: Optional[List[str]] = None) -> NoReturn:
    """
    Run the operation described by the given arguments.

    Defaults to parsing command-line arguments from sys.argv if none are specified.
    """
    # Parse command-line arguments.
    args = Arguments.parse(arguments)

    # Configure debug logging.
    if args.debug:
        log.setLevel(logging.DEBUG)
    else:
        log.setLevel(logging.ERROR)

    try:
        server = _create_server(args)
        _run(server, args)
        exit_code = 0
    except KeyboardInterrupt:
        exit_code = 128 + signal.SIGINT
    except errors.Error as e:
        log.error(f"{args.command} failed: {type(e).__name__}: {e}")
        exit_code = constants.SMBPIPE_ERROR_CODE
    except Exception as e:
        log.error(f"failed to run command: {e}")
        exit_code = constants.SMBPIPE_ERROR_CODE

    sys.exit(exit_code)


def _create_server(args: Arguments) -> Server:
    """Combine the arguments with the config file into a server."""
    config = Config.load(os.path.expanduser(args.config))

    if args.timeout is not None:
        config.client.timeout = args.timeout

    user = args.user or config.server.user or getpass.getuser()

    password = args.password or os.environ.get("SMBPIPE_PASSWORD")
    if password is None and config.server.password is None:
        password = getpass.getpass(f"Password for {user}@{args.host}: ")

    return Server(
        args.host,
        user,
        password,
        workgroup=args.workgroup,
        timezone=args.timezone,
        config=config,
    )


def _run(server: Server, args: Arguments) -> None:
    """Perform the requested operation and print its results."""
    if args.command == "shares":
        for name, comment in sorted(server.list_shares().items()):
            print(f"{name}\t{comment}")
        return

    assert args.share is not None

    with server.get_share(args.share) as share:
        if args.command == "ls":
            for entry in share.dir(args.args[0]):
                print(_format_entry(entry))
        elif args.command == "stat":
            print(_format_entry(share.stat(args.args[0])))
        elif args.command == "mkdir":
            share.mkdir(args.args[0])
        elif args.command == "rmdir":
            share.rmdir(args.args[0])
        elif args.command == "rm":
            share.delete(args.args[0])
        elif args.command == "mv":
            share.rename(args.args[0], args.args[1])
        elif args.command == "get":
            share.get(args.args[0], args.args[1])
        elif args.command == "put":
            share.put(args.args[0], args.args[1])
        elif args.command == "cat":
            with share.read(args.args[0]) as stream:
                shutil.copyfileobj(stream, sys.stdout.buffer)
            sys.stdout.buffer.flush()
        elif args.command == "attrib":
            share.set_mode(args.args[0], parse_mode(args.args[1]))


def _format_entry(entry: FileInfo) -> str:
    """Format an entry like a line of `ls -l`, with DOS attribute letters."""
    letters = "".join(
        letter if entry.mode & flag else "-"
        for letter, flag in MODE_LETTERS.items()
        if letter not in ("N", "V")
    )
    mtime = entry.mtime.strftime("%Y-%m-%d %H:%M:%S %z")

    return f"{letters} {entry.size:>12} {mtime} {entry.name}"


if __name__ == "__main__":
    main()
