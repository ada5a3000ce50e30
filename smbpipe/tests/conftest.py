"""Module that adds flags to pytest to enable certain extra tests, and shared fixtures."""

import os
import stat
import textwrap

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--smbclient",
        action="store_true",
        default=False,
        help="Run tests against a real server (see tests/integration)",
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "smbclient: mark test as requiring smbclient and a server to run"
    )


def pytest_collection_modifyitems(config, items):
    if not config.getoption("--smbclient"):
        skip_smbclient = pytest.mark.skip(reason="only runs with --smbclient option")

        for item in items:
            if "smbclient" in item.keywords:
                item.add_marker(skip_smbclient)


@pytest.fixture
def fake_client(tmp_path):
    """Return a function that writes a bash script to stand in for smbclient."""
    counter = [0]

    def create(body: str) -> str:
        counter[0] += 1
        path = tmp_path / f"fake_client_{counter[0]}"

        path.write_text("#!/bin/bash\n" + textwrap.dedent(body))
        os.chmod(path, os.stat(path).st_mode | stat.S_IXUSR)

        return str(path)

    return create
