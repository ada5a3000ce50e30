"""Module defining various global constants."""

# smbpipe version
VERSION = "1.0.0"

# Special exit code for when smbpipe itself fails.
SMBPIPE_ERROR_CODE = 254

# External clients that are driven as subprocesses.
CLIENT = "smbclient"
NET_CLIENT = "net"

# Oldest smbclient known to support --authentication-file, allinfo and -g output.
MIN_CLIENT_VERSION = "3.6.0"

# Descriptor numbers inside the spawned client. These are part of the argument line
# (as /proc/self/fd/N) so they must match exactly.
CREDENTIALS_FD = 3
UPLOAD_FD = 4
DOWNLOAD_FD = 5

# Prefix of the interactive prompt, e.g. "smb: \dir\> ".
PROMPT_PREFIX = "smb: \\"
PROMPT_SUFFIX = "> "

# Seconds to wait for output from the client before the session is considered dead.
DEFAULT_TIMEOUT = 30.0
