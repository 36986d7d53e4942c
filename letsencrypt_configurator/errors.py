"""Failure taxonomy and reserved exit codes."""

from enum import IntEnum


class ExitCode(IntEnum):
    """One code per abort point; 0 means the whole run completed."""

    OK = 0
    MISSING_HOME = 1
    CONFIRM_CANCELLED = 2
    DOMAIN_CANCELLED = 3
    EMAIL_CANCELLED = 4
    APT_UPDATE = 5
    INSTALL_NGINX = 6
    INSTALL_CERTBOT = 7
    BACKUP = 8
    CHALLENGE_CONFIG = 9
    CHALLENGE_CONFIG_TEST = 10
    CHALLENGE_RESTART = 11
    CERTIFICATE = 12
    DHPARAM = 13
    SSL_SNIPPETS = 14
    FINAL_CONFIG = 15
    FINAL_CONFIG_TEST = 16
    FINAL_RESTART = 17
    INTERRUPTED = 130


class ConfiguratorError(Exception):
    """Base class for every expected configurator failure."""


class OperatorCancelled(ConfiguratorError):
    """The operator aborted at a prompt."""


class MissingEnvironment(ConfiguratorError):
    """A required environment value is absent."""


class ExternalToolFailure(ConfiguratorError):
    """An external process exited non-zero or reported failure."""


class ProcessStartError(ExternalToolFailure):
    """The executable could not be launched at all."""


class MarkerTimeout(ExternalToolFailure):
    """A watched process produced neither marker before exiting or timing out."""


class IOFailure(ConfiguratorError):
    """A file could not be read, written or copied."""
