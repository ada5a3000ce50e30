"""
Access SMB shares by driving smbclient.

smbpipe implements remote file system operations (list, stat, create, delete, rename,
read, write, set attributes) without implementing the SMB protocol. Instead it runs
smbclient as a subprocess and translates every operation into commands at its prompt,
with separate single-use processes for streaming file contents. See the session module
for the details of that protocol and the parser module for interpreting the output.
"""

from smbpipe.constants import VERSION
from smbpipe.errors import (
    AccessDeniedError,
    AlreadyExistsError,
    AuthenticationError,
    CommandError,
    ConnectionError,
    Error,
    InvalidHostError,
    InvalidTypeError,
    NotEmptyError,
    NotFoundError,
)
from smbpipe.fileinfo import FileInfo, Kind, Mode, StatRecord
from smbpipe.server import Server
from smbpipe.share import Share

__version__ = VERSION

__all__ = [
    "AccessDeniedError",
    "AlreadyExistsError",
    "AuthenticationError",
    "CommandError",
    "ConnectionError",
    "Error",
    "InvalidHostError",
    "InvalidTypeError",
    "NotEmptyError",
    "NotFoundError",
    "FileInfo",
    "Kind",
    "Mode",
    "StatRecord",
    "Server",
    "Share",
]
