"""
Modules that drive smbclient processes as the transport to a share.

smbpipe doesn't speak the SMB protocol itself. Instead it runs smbclient, which already
handles authentication, dialect negotiation, signing and encryption, and talks to it the
way a user would: by typing commands at its prompt and reading what it prints. This
turns into a line-oriented RPC protocol with a few awkward properties:

* There is no formal grammar for the output and no explicit success marker. A command
succeeded if its output contains no known error, which is left to the parser.
* The only delimiter between responses is the interactive prompt (smb: \\> ), so
commands have to be issued strictly one at a time.
* Credentials should never appear on the command line or in the environment, where
other users can see them.
* Raw file contents can't be passed through the console without mangling them.

The last two are solved by handing the client extra file descriptors, which it can
open through /proc/self/fd/N like any other file:

* 3 - credentials, in the format of an --authentication-file, closed after writing
* 4 - upload data, read by `put /proc/self/fd/4 <path>`
* 5 - download data, written by `get <path> /proc/self/fd/5`

These numbers are fixed because they are part of the argument line.

A Connection owns one long-lived interactive session for metadata and management
commands. Streaming reads and writes each get a RawTransferSession, which runs a
separate single-use process that transfers exactly one file and exits.
"""

from .connection import Connection, State
from .process import Credentials, DescriptorRole, Marker, ProcessSession
from .raw import DownloadStream, RawTransferSession, UploadStream

__all__ = [
    "Connection",
    "State",
    "Credentials",
    "DescriptorRole",
    "Marker",
    "ProcessSession",
    "DownloadStream",
    "RawTransferSession",
    "UploadStream",
]
