"""Timestamped snapshot of the nginx configuration tree."""

import datetime
import logging
import shutil
from pathlib import Path
from typing import Callable, Optional, Union

from letsencrypt_configurator.errors import IOFailure, OperatorCancelled
from letsencrypt_configurator.logger import get_logger
from letsencrypt_configurator.ui import Operator, NordColors

TIMESTAMP_FORMAT: str = "%Y%m%d%H%M"


class BackupManager:
    """Copies a directory tree to <backup_root>/<YYYYMMDDHHMM> before it is modified."""

    def __init__(
        self,
        backup_root: Union[str, Path],
        operator: Operator,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
        logger: Optional[logging.Logger] = None,
    ):
        self.backup_root = Path(backup_root)
        self.operator = operator
        self.clock = clock
        self.logger = logger or get_logger()

    def destination_for(self, when: datetime.datetime) -> Path:
        return self.backup_root / when.strftime(TIMESTAMP_FORMAT)

    def snapshot(self, source_dir: Union[str, Path]) -> Optional[Path]:
        """
        Copy source_dir recursively and return the snapshot path.

        Returns None when the source is missing and the operator agrees to go on
        without a backup. Raises OperatorCancelled if they do not, and IOFailure
        when copying fails; a partial copy is left in place.
        """
        source = Path(source_dir)
        if not source.is_dir():
            self.operator.print(
                f"[{NordColors.RED}]nginx configuration does not exist at path {source}![/]"
            )
            self.logger.warning(f"Nothing to back up, {source} is missing")
            answer = self.operator.confirm(
                "Do you want to continue without backing up the file(s)?"
            )
            if answer is not True:
                raise OperatorCancelled("Continuing without a backup was declined.")
            return None

        destination = self.destination_for(self.clock())
        self.operator.print(f"Backing up {source} to {destination}...")
        try:
            destination.mkdir(parents=True, exist_ok=True)
            shutil.copytree(source, destination, dirs_exist_ok=True)
        except OSError as e:
            raise IOFailure(f"Unable to back up {source} to {destination}: {e}") from e

        self.logger.info(f"Backed up {source} to {destination}")
        return destination
