# ----------------------------------------------------------------
# Dependencies and Imports
# ----------------------------------------------------------------
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from letsencrypt_configurator.errors import MissingEnvironment

# ----------------------------------------------------------------
# Paths & Constants
# ----------------------------------------------------------------
NGINX_DIRECTORY: str = "/etc/nginx/"
CRON_DIRECTORY: str = "/etc/cron.d/"
WEBROOT: str = "/var/www/html"
DHPARAM_PATH: str = "/etc/ssl/certs/dhparam.pem"
DHPARAM_BITS: int = 2048
BACKUP_FOLDER: str = "nginx-backup"
LOG_FILE: str = "/var/log/letsencrypt_configurator.log"
PACKAGE_TEMPLATES: Path = Path(__file__).resolve().parent / "templates"

OPERATION_TIMEOUT: int = 300  # seconds to wait for a watched process marker
STREAM_LINE_LIMIT: int = 1024 * 1024  # longest output line a watched process may emit
RESTART_SETTLE_SECONDS: float = 2.0

# Template file names inside the template directory
CHALLENGE_TEMPLATE: str = "default.conf"
FINAL_SITE_TEMPLATE: str = "default-after.conf"
SSL_DOMAIN_TEMPLATE: str = "ssl-snippet.conf"
SSL_PARAMS_TEMPLATE: str = "ssl-params-snippet.conf"
CRON_TEMPLATE: str = "cron"

# nginx -t reports its verdict on stderr
NGINX_TEST_SUCCESS_MARKER: str = "test is successful"
NGINX_TEST_FAIL_MARKER: str = "test failed"


# ----------------------------------------------------------------
# Data Structures
# ----------------------------------------------------------------
@dataclass
class Config:
    """Every location and tunable the configurator touches."""

    home_dir: Optional[Path] = None
    nginx_dir: Path = field(default_factory=lambda: Path(NGINX_DIRECTORY))
    cron_dir: Path = field(default_factory=lambda: Path(CRON_DIRECTORY))
    template_dir: Path = PACKAGE_TEMPLATES
    webroot: str = WEBROOT
    dhparam_path: str = DHPARAM_PATH
    dhparam_bits: int = DHPARAM_BITS
    backup_folder: str = BACKUP_FOLDER
    log_file: str = LOG_FILE
    staging: bool = False
    restart_settle_seconds: float = RESTART_SETTLE_SECONDS
    watch_timeout: Optional[float] = OPERATION_TIMEOUT

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any
    ) -> "Config":
        """Build a config from the process environment. A blank HOME leaves home_dir unset."""
        environ = os.environ if environ is None else environ
        home = (environ.get("HOME") or "").strip()
        return cls(home_dir=Path(home) if home else None, **overrides)

    def require_home(self) -> Path:
        if self.home_dir is None:
            raise MissingEnvironment(
                "Unable to retrieve your HOME folder location as HOME environment was not defined!"
            )
        return self.home_dir

    # Derived locations
    @property
    def sites_available_dir(self) -> Path:
        return self.nginx_dir / "sites-available"

    @property
    def snippets_dir(self) -> Path:
        return self.nginx_dir / "snippets"

    @property
    def default_site_path(self) -> Path:
        return self.sites_available_dir / "default"

    @property
    def ssl_params_snippet_path(self) -> Path:
        return self.snippets_dir / "ssl-params.conf"

    def ssl_domain_snippet_path(self, domain: str) -> Path:
        return self.snippets_dir / f"ssl-{domain}.conf"

    @property
    def cron_file_path(self) -> Path:
        return self.cron_dir / "letsencrypt"

    @property
    def backup_root(self) -> Path:
        return self.require_home() / self.backup_folder

    def template(self, name: str) -> Path:
        return self.template_dir / name

    def to_dict(self) -> Dict[str, Any]:
        """Convert the config to a dictionary."""
        return {key: str(value) for key, value in asdict(self).items()}
