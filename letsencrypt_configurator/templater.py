"""Materialize configuration files from bundled templates."""

import logging
from pathlib import Path
from typing import Optional, Sequence, Union

from letsencrypt_configurator.errors import IOFailure
from letsencrypt_configurator.logger import get_logger

PathLike = Union[str, Path]


class ConfigTemplater:
    """
    Regenerates a destination file from a template on every call.

    Templates use positional str.format fields ({0} is the domain), so literal
    braces in nginx blocks are written doubled. With no substitutions the
    template is copied verbatim and may contain single braces.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger()

    def render(self, template_path: PathLike, substitutions: Sequence[str] = ()) -> str:
        template_path = Path(template_path)
        try:
            content = template_path.read_text(encoding="utf-8")
        except OSError as e:
            raise IOFailure(f"Unable to read template {template_path}: {e}") from e

        if not substitutions:
            return content
        try:
            return content.format(*substitutions)
        except (IndexError, KeyError, ValueError) as e:
            raise IOFailure(f"Template {template_path.name} is malformed: {e!r}") from e

    def materialize(
        self,
        template_path: PathLike,
        destination_path: PathLike,
        substitutions: Sequence[str] = (),
    ) -> Path:
        """Render the template and write it, deleting any existing destination first."""
        destination = Path(destination_path)
        content = self.render(template_path, substitutions)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            if destination.exists() or destination.is_symlink():
                destination.unlink()
            destination.write_text(content, encoding="utf-8")
        except OSError as e:
            raise IOFailure(f"Unable to write {destination}: {e}") from e

        self.logger.info(f"Wrote {destination} from template {Path(template_path).name}")
        return destination
