"""Module that composes smbclient argument lines and the commands sent to it."""

from typing import List

from smbpipe.session.process import DescriptorRole

AUTHENTICATION_ARG = f"--authentication-file={DescriptorRole.CREDENTIALS.proc_path}"


def _check_single_line(path: str) -> None:
    # A line break would end the command early and start a new one
    if "\n" in path or "\r" in path:
        raise ValueError(f"path may not contain line breaks: {path!r}")


def escape_path(path: str) -> str:
    """Quote a path on the share for use in an smbclient command."""
    _check_single_line(path)

    path = path.replace("/", "\\")
    path = path.replace('"', '^"')

    return f'"{path}"'


def escape_local_path(path: str) -> str:
    """Quote a local path for use in an smbclient command."""
    _check_single_line(path)

    path = path.replace('"', '\\"')

    return f'"{path}"'


def _command_string(command: str) -> str:
    # smbclient splits -c on every semicolon, quoted or not
    if ";" in command:
        raise ValueError(f"command string may not contain semicolons: {command!r}")

    return command


def interactive_command(binary: str, host: str, share: str) -> List[str]:
    """Compose the argument line for a long-lived interactive session."""
    return [binary, AUTHENTICATION_ARG, f"//{host}/{share}"]


def download_command(binary: str, host: str, share: str, path: str) -> List[str]:
    """Compose the argument line for streaming a file to the download descriptor."""
    target = DescriptorRole.DOWNLOAD_OUT.proc_path
    command = _command_string(f"get {escape_path(path)} {target}")

    return interactive_command(binary, host, share) + ["-c", command]


def upload_command(binary: str, host: str, share: str, path: str) -> List[str]:
    """Compose the argument line for streaming the upload descriptor to a file."""
    source = DescriptorRole.UPLOAD_IN.proc_path
    command = _command_string(f"put {source} {escape_path(path)}")

    return interactive_command(binary, host, share) + ["-c", command]


def list_shares_command(binary: str, host: str) -> List[str]:
    """Compose the argument line for listing the shares of a host (grepable)."""
    return [binary, AUTHENTICATION_ARG, "-gL", host]
