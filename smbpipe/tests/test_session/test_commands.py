import pytest

from smbpipe.session import commands


def test_escape_path():
    assert commands.escape_path("/docs/report.txt") == '"\\docs\\report.txt"'
    assert commands.escape_path("my file") == '"my file"'
    assert commands.escape_path('say "hi"') == '"say ^"hi^""'


def test_escape_local_path():
    assert commands.escape_local_path("/tmp/a b") == '"/tmp/a b"'
    assert commands.escape_local_path('/tmp/"q"') == '"/tmp/\\"q\\""'


def test_escape_rejects_line_breaks():
    with pytest.raises(ValueError):
        commands.escape_path("a\nb")

    with pytest.raises(ValueError):
        commands.escape_local_path("a\rb")


def test_interactive_command():
    assert commands.interactive_command("smbclient", "host", "share") == [
        "smbclient",
        "--authentication-file=/proc/self/fd/3",
        "//host/share",
    ]


def test_download_command():
    command = commands.download_command("smbclient", "host", "share", "/a/b.txt")

    assert command[:3] == commands.interactive_command("smbclient", "host", "share")
    assert command[3:] == ["-c", 'get "\\a\\b.txt" /proc/self/fd/5']


def test_upload_command():
    command = commands.upload_command("smbclient", "host", "share", "/it's.txt")

    assert command[3:] == ["-c", 'put /proc/self/fd/4 "\\it\'s.txt"']


def test_transfer_rejects_semicolons():
    with pytest.raises(ValueError):
        commands.download_command("smbclient", "host", "share", "/a;rm b")

    with pytest.raises(ValueError):
        commands.upload_command("smbclient", "host", "share", "/a;b")


def test_list_shares_command():
    assert commands.list_shares_command("smbclient", "host") == [
        "smbclient",
        "--authentication-file=/proc/self/fd/3",
        "-gL",
        "host",
    ]
