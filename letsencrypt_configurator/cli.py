#!/usr/bin/env python3
"""
Interactive nginx + Let's Encrypt configurator.

Replaces the default nginx site with a TLS-enabled one for a single domain,
backing up /etc/nginx to ~/nginx-backup/<timestamp> first.

Note: Run this script with root privileges.
"""

import signal
import sys
from typing import Any

import click
from rich.traceback import install as install_rich_traceback

from letsencrypt_configurator import VERSION
from letsencrypt_configurator.config import LOG_FILE, Config
from letsencrypt_configurator.errors import ExitCode
from letsencrypt_configurator.logger import setup_logger
from letsencrypt_configurator.pipeline import Configurator
from letsencrypt_configurator.ui import Operator, console, create_header, print_warning

install_rich_traceback(show_locals=False)


# ----------------------------------------------------------------
# Signal Handling
# ----------------------------------------------------------------
def signal_handler(sig: int, frame: Any) -> None:
    try:
        sig_name = signal.Signals(sig).name
        print_warning(f"Process interrupted by {sig_name}")
    except ValueError:
        print_warning(f"Process interrupted by signal {sig}")
    sys.exit(128 + sig)


# ----------------------------------------------------------------
# Main Entry Point
# ----------------------------------------------------------------
@click.command()
@click.option(
    "--staging",
    is_flag=True,
    envvar="LE_CONFIGURATOR_STAGING",
    help="Dry-run the certificate request against the staging authority",
)
@click.option("--debug", is_flag=True, help="Show debug logging on the console")
@click.option(
    "--log-file",
    default=LOG_FILE,
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Where to write the run log",
)
@click.version_option(VERSION)
def main(staging: bool, debug: bool, log_file: str) -> None:
    """Install nginx, obtain a Let's Encrypt certificate and enable HTTPS."""
    signal.signal(signal.SIGTERM, signal_handler)

    logger = setup_logger(log_file, debug=debug)
    config = Config.from_env(staging=staging, log_file=log_file)
    logger.debug(f"Configuration: {config.to_dict()}")

    console.print(create_header())
    operator = Operator(console)
    try:
        code = Configurator(config, operator, logger=logger).run()
        if code == ExitCode.OK:
            operator.read_line("Press Enter to exit...")
    except KeyboardInterrupt:
        console.print()
        print_warning("Configuration interrupted by user.")
        logger.warning("Interrupted by user.")
        code = ExitCode.INTERRUPTED

    logger.info(f"Exiting with code {int(code)}")
    sys.exit(int(code))


if __name__ == "__main__":
    main()
