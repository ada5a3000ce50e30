import pytest

from smbpipe.args import Arguments


def test_no_args():
    with pytest.raises(SystemExit):
        Arguments.parse([])


def test_basic_usage():
    args = Arguments.parse(["//fileserver/documents", "ls", "/reports"])

    assert args.host == "fileserver"
    assert args.share == "documents"
    assert args.command == "ls"
    assert args.args == ["/reports"]

    assert not args.debug
    assert args.timeout is None


def test_target_formats():
    assert Arguments.parse(["fileserver/documents", "ls", "/"]).target == (
        "fileserver",
        "documents",
    )
    assert Arguments.parse(["\\\\fileserver\\documents", "ls", "/"]).target == (
        "fileserver",
        "documents",
    )

    with pytest.raises(SystemExit):
        Arguments.parse(["//fileserver/documents/sub", "ls", "/"])

    with pytest.raises(SystemExit):
        Arguments.parse(["//", "ls", "/"])


def test_shares_without_share():
    args = Arguments.parse(["//fileserver", "shares"])

    assert args.host == "fileserver"
    assert args.share is None
    assert args.args == []


def test_share_required():
    with pytest.raises(SystemExit):
        Arguments.parse(["//fileserver", "ls", "/"])


def test_unknown_command():
    with pytest.raises(SystemExit):
        Arguments.parse(["//fileserver/documents", "format", "/"])


def test_argument_count():
    args = Arguments.parse(["//fileserver/documents", "mv", "/a", "/b"])
    assert args.args == ["/a", "/b"]

    with pytest.raises(SystemExit):
        Arguments.parse(["//fileserver/documents", "mv", "/a"])

    with pytest.raises(SystemExit):
        Arguments.parse(["//fileserver/documents", "ls", "/a", "/b"])


def test_attrib_without_mode():
    args = Arguments.parse(["//fileserver/documents", "attrib", "/a"])

    assert args.args == ["/a", ""]


def test_credentials():
    args = Arguments.parse(
        ["-U", "alice", "-W", "CORP", "--password=secret", "//h/s", "ls", "/"]
    )

    assert args.user == "alice"
    assert args.workgroup == "CORP"
    assert args.password == "secret"


def test_timeout():
    args = Arguments.parse(["--timeout=1.5", "//h/s", "ls", "/"])
    assert args.timeout == 1.5

    with pytest.raises(SystemExit):
        Arguments.parse(["--timeout=-1", "//h/s", "ls", "/"])

    with pytest.raises(SystemExit):
        Arguments.parse(["--timeout=abc", "//h/s", "ls", "/"])


def test_command_arguments_that_resemble_flags():
    args = Arguments.parse(["//h/s", "rm", "--debug"])

    assert not args.debug
    assert args.args == ["--debug"]
