import os
import time

import pytest

import smbpipe.errors as errors
from smbpipe.session.process import (
    Credentials,
    DescriptorRole,
    Marker,
    ProcessSession,
)


def test_credentials_format():
    assert Credentials("alice", "secret").format() == (
        "username=alice\npassword=secret\n"
    )
    assert Credentials("alice", "secret", "CORP").format() == (
        "username=alice\npassword=secret\ndomain=CORP\n"
    )
    assert Credentials("guest").format() == "username=guest\npassword=\n"


def test_credentials_repr_hides_password():
    assert "secret" not in repr(Credentials("alice", "secret"))


def test_descriptor_roles():
    assert DescriptorRole.CREDENTIALS.fd == 3
    assert DescriptorRole.UPLOAD_IN.fd == 4
    assert DescriptorRole.DOWNLOAD_OUT.fd == 5

    assert DescriptorRole.CREDENTIALS.child_reads
    assert DescriptorRole.UPLOAD_IN.child_reads
    assert not DescriptorRole.DOWNLOAD_OUT.child_reads

    assert DescriptorRole.DOWNLOAD_OUT.proc_path == "/proc/self/fd/5"


def test_spawn_failure(tmp_path):
    with pytest.raises(errors.ConnectionError) as e:
        ProcessSession.spawn([str(tmp_path / "nonexistent")])

    assert "failed to start" in str(e.value)


def test_credentials_on_descriptor(fake_client, tmp_path):
    output = tmp_path / "credentials"
    client = fake_client(f"cat /proc/self/fd/3 > {output}\n")

    session = ProcessSession.spawn([client])
    session.write_credentials(Credentials("alice", "secret", "CORP"))

    assert session.read_all() == []
    session.close()

    assert output.read_text() == "username=alice\npassword=secret\ndomain=CORP\n"


def test_credentials_written_once(fake_client):
    session = ProcessSession.spawn([fake_client("cat <&3 > /dev/null\n")])

    try:
        session.write_credentials(Credentials("alice"))

        with pytest.raises(RuntimeError):
            session.write_credentials(Credentials("alice"))
    finally:
        session.close()


def test_prompt_tokens(fake_client):
    client = fake_client(
        r"""
        printf 'Try "help" to get a list of possible commands.\n'
        printf 'smb: \\> '
        read -r line
        printf 'you said %s\n' "$line"
        printf 'smb: \\docs\\> '
        read -r line
        printf 'smb: \\> late output\n'
        """
    )

    session = ProcessSession.spawn([client], [])

    try:
        assert session.read_token() == 'Try "help" to get a list of possible commands.'
        assert session.read_token() is Marker.PROMPT

        session.write_line("ls")
        assert session.read_token() == "you said ls"
        assert session.read_token() is Marker.PROMPT

        session.write_line("quit")
        assert session.read_token() is Marker.PROMPT
        assert session.read_token() == "late output"
    finally:
        session.close()


def test_prompt_only_at_line_start(fake_client):
    client = fake_client(r"printf 'name smb: \\> x\n'" + "\n")

    session = ProcessSession.spawn([client], [])

    try:
        assert session.read_token() == "name smb: \\> x"
    finally:
        session.close()


def test_read_timeout(fake_client):
    session = ProcessSession.spawn([fake_client("exec sleep 10\n")], [], timeout=0.2)

    try:
        t_start = time.time()

        with pytest.raises(errors.ConnectionError) as e:
            session.read_token()

        assert time.time() - t_start < 5
        assert "no output" in str(e.value)
    finally:
        session.close()


def test_process_exit(fake_client):
    session = ProcessSession.spawn([fake_client("echo bye\n")], [])

    try:
        assert session.read_token() == "bye"

        with pytest.raises(errors.ConnectionError):
            session.read_token()

        assert not session.is_valid()
    finally:
        assert session.close(terminate=False) == 0


def test_unterminated_output_at_exit(fake_client):
    session = ProcessSession.spawn([fake_client("printf 'partial'\n")], [])

    try:
        assert session.read_all() == ["partial"]
    finally:
        session.close()


def test_download_descriptor_mapping(fake_client):
    session = ProcessSession.spawn(
        [fake_client("printf 'payload' > /proc/self/fd/5\n")],
        [DescriptorRole.DOWNLOAD_OUT],
    )

    fd = session.take_descriptor(DescriptorRole.DOWNLOAD_OUT)

    try:
        with os.fdopen(fd, "rb") as f:
            assert f.read() == b"payload"
    finally:
        session.close()

    with pytest.raises(RuntimeError):
        session.take_descriptor(DescriptorRole.DOWNLOAD_OUT)


def test_close_terminates(fake_client):
    session = ProcessSession.spawn([fake_client("exec sleep 10\n")], [])

    assert session.is_valid()
    assert session.returncode is None

    session.close()

    assert session.returncode is not None
    assert not session.is_valid()
