from datetime import timedelta
import subprocess
from unittest import mock

from dateutil import tz
import pytest
import semver

from smbpipe.config import Config
import smbpipe.errors as errors
from smbpipe.server import parse_timezone, Server


def completed(stdout, returncode=0):
    return subprocess.CompletedProcess([], returncode, stdout=stdout, stderr=b"")


def create_server(client="smbclient", **kwargs):
    config = Config()
    config.client.binary = client
    config.client.timeout = 5

    return Server("fileserver", "alice", "secret", config=config, **kwargs)


def test_parse_timezone_offsets():
    assert parse_timezone("+0100").utcoffset(None) == timedelta(hours=1)
    assert parse_timezone("-0530").utcoffset(None) == timedelta(hours=-5, minutes=-30)
    assert parse_timezone("+02:00").utcoffset(None) == timedelta(hours=2)


def test_parse_timezone_names():
    assert parse_timezone("UTC") is not None
    assert parse_timezone("Europe/Amsterdam") is not None
    assert parse_timezone("Nowhere/Special") is None
    assert parse_timezone("") is None


def test_credentials_defaults_from_config():
    config = Config()
    config.server.password = "configured"
    config.server.workgroup = "CORP"

    server = Server("fileserver", "alice", config=config)

    assert server.credentials.password == "configured"
    assert server.credentials.workgroup == "CORP"

    server = Server("fileserver", "alice", "", workgroup="HOME", config=config)

    assert server.credentials.password == ""
    assert server.credentials.workgroup == "HOME"


def test_configured_timezone():
    server = create_server(timezone="+0200")

    with mock.patch("smbpipe.server.subprocess.run") as mock_run:
        assert server.get_timezone().utcoffset(None) == timedelta(hours=2)

    assert not mock_run.called


def test_unknown_timezone():
    server = create_server(timezone="Nowhere/Special")

    with pytest.raises(ValueError):
        server.get_timezone()


def test_detected_timezone():
    server = create_server()

    with mock.patch("smbpipe.server.subprocess.run") as mock_run:
        mock_run.return_value = completed(b"-0300\n")

        assert server.get_timezone().utcoffset(None) == timedelta(hours=-3)
        assert server.get_timezone().utcoffset(None) == timedelta(hours=-3)

    assert mock_run.call_count == 1
    assert mock_run.call_args[0][0] == ["net", "time", "zone", "-S", "fileserver"]


def test_detection_failure_falls_back_to_local():
    server = create_server()

    with mock.patch("smbpipe.server.subprocess.run") as mock_run:
        mock_run.return_value = completed(b"Could not connect\n", returncode=255)

        assert server.get_timezone() == tz.tzlocal()


def test_detection_missing_binary():
    server = create_server()

    with mock.patch("smbpipe.server.subprocess.run") as mock_run:
        mock_run.side_effect = FileNotFoundError("net")

        assert server.get_timezone() == tz.tzlocal()


def test_client_version():
    server = create_server()

    with mock.patch("smbpipe.server.subprocess.run") as mock_run:
        mock_run.return_value = completed(b"Version 4.15.13-Ubuntu\n")

        assert server.client_version() == semver.VersionInfo(4, 15, 13)
        server.check_client()


def test_client_too_old():
    server = create_server()

    with mock.patch("smbpipe.server.subprocess.run") as mock_run:
        mock_run.return_value = completed(b"Version 3.0.37\n")

        with pytest.raises(errors.ConnectionError):
            server.check_client()


def test_client_missing(tmp_path):
    server = create_server(str(tmp_path / "nonexistent"))

    with pytest.raises(errors.ConnectionError):
        server.client_version()


def test_list_shares(fake_client, tmp_path):
    client = fake_client(
        f"""
        printf '%s\\n' "$@" > {tmp_path / "args"}
        cat <&3 > /dev/null
        echo 'Disk|documents|Team documents'
        echo 'Disk|public|'
        echo 'IPC|IPC$|IPC Service (Samba 4.15.13)'
        echo 'Reconnecting with SMB1 for workgroup listing.'
        echo 'do_connect: Connection to fileserver failed (Error NT_STATUS_RESOURCE_NAME_NOT_FOUND)'
        echo 'Unable to connect with SMB1 -- no workgroup available'
        """
    )

    server = create_server(client, timezone="UTC")

    assert server.list_shares() == {"documents": "Team documents", "public": ""}
    assert (tmp_path / "args").read_text().splitlines() == [
        "--authentication-file=/proc/self/fd/3",
        "-gL",
        "fileserver",
    ]


def test_list_shares_logon_failure(fake_client):
    client = fake_client(
        """
        cat <&3 > /dev/null
        echo 'session setup failed: NT_STATUS_LOGON_FAILURE'
        exit 1
        """
    )

    server = create_server(client, timezone="UTC")

    with pytest.raises(errors.AuthenticationError):
        server.list_shares()


def test_get_share():
    server = create_server(timezone="UTC")

    with mock.patch("smbpipe.share.Connection"):
        share = server.get_share("documents")

    assert share.name == "documents"
    assert share.server is server
