"""Module for configuration variables with defaults that are overridable by a file."""

from __future__ import annotations

from configparser import ConfigParser, SectionProxy
from dataclasses import dataclass, field
from typing import Optional

from smbpipe import constants
from smbpipe.logger import log


@dataclass
class ClientConfig:
    """Configuration variables related to the external smbclient/net binaries."""

    binary: str = constants.CLIENT
    net_binary: str = constants.NET_CLIENT

    # Seconds without output after which a session is considered dead
    timeout: float = constants.DEFAULT_TIMEOUT

    @staticmethod
    def load(section: SectionProxy) -> ClientConfig:
        """Load overridden variables from a section within a config file."""
        config = ClientConfig()

        config.binary = section.get("binary", fallback=config.binary)
        config.net_binary = section.get("net_binary", fallback=config.net_binary)
        config.timeout = section.getfloat("timeout", fallback=config.timeout)

        if config.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {config.timeout}")

        return config


@dataclass
class ServerConfig:
    """Default credentials and server properties."""

    user: Optional[str] = None
    password: Optional[str] = None
    workgroup: Optional[str] = None

    # Time zone of the server, either a name like "Europe/Amsterdam" or an offset
    # like "+0100". Detected through `net time zone` if not set.
    timezone: Optional[str] = None

    @staticmethod
    def load(section: SectionProxy) -> ServerConfig:
        """Load overridden variables from a section within a config file."""
        config = ServerConfig()

        config.user = section.get("user", fallback=config.user)
        config.password = section.get("password", fallback=config.password)
        config.workgroup = section.get("workgroup", fallback=config.workgroup)
        config.timezone = section.get("timezone", fallback=config.timezone)

        return config


@dataclass
class Config:
    """Configuration variables."""

    client: ClientConfig = field(default_factory=ClientConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    @staticmethod
    def load(filename: str) -> Config:
        """Load overridden configuration variables from a config file."""
        parser = ConfigParser(interpolation=None)

        config = Config()

        try:
            with open(filename, "r") as f:
                parser.read_string(f.read(), filename)

            if "client" in parser:
                config.client = ClientConfig.load(parser["client"])

            if "server" in parser:
                config.server = ServerConfig.load(parser["server"])
        except FileNotFoundError:
            log.info(f"no config file at {filename}")
        except Exception as e:
            # An unreadable config file is not considered a fatal error since we can
            # fall back to defaults.
            log.error(f"failed to read config file {filename}: {e}")
        else:
            # Never log the password itself
            log.info(f"loaded config for client {config.client}")

        return config
