"""
The provisioning pipeline.

A fixed, ordered list of steps: each one must succeed before the next runs,
and each failure maps to its own exit code. Only the renewal schedule and the
cron restart are soft-fail, since the server is already serving TLS by then.
"""

# ----------------------------------------------------------------
# Dependencies and Imports
# ----------------------------------------------------------------
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from letsencrypt_configurator.backup import BackupManager
from letsencrypt_configurator.config import (
    CHALLENGE_TEMPLATE,
    CRON_TEMPLATE,
    FINAL_SITE_TEMPLATE,
    NGINX_TEST_FAIL_MARKER,
    NGINX_TEST_SUCCESS_MARKER,
    SSL_DOMAIN_TEMPLATE,
    SSL_PARAMS_TEMPLATE,
    Config,
)
from letsencrypt_configurator.errors import (
    ConfiguratorError,
    ExitCode,
    MissingEnvironment,
)
from letsencrypt_configurator.logger import get_logger
from letsencrypt_configurator.process import ProcessRunner
from letsencrypt_configurator.templater import ConfigTemplater
from letsencrypt_configurator.ui import (
    Operator,
    error_banner,
    print_section,
    print_success,
    print_warning,
    success_banner,
    warning_banner,
)

NOT_ROOT_HINT: str = "Do you run this configurator as root?"


# ----------------------------------------------------------------
# Data Structures
# ----------------------------------------------------------------
@dataclass(frozen=True)
class Step:
    """One pipeline entry. The action returns False (or raises) on failure."""

    label: str
    action: Callable[[], bool]
    exit_code: Optional[ExitCode]
    failure_message: str
    success_message: Optional[str] = None
    soft_fail: bool = False


def derive_alt_names(domain: str) -> Tuple[str, ...]:
    """The certificate names: the domain plus its www. variant unless it already has www."""
    if "www" in domain:
        return (domain,)
    return (domain, f"www.{domain}")


# ----------------------------------------------------------------
# Orchestrator
# ----------------------------------------------------------------
class Configurator:
    """Drives nginx + Let's Encrypt bring-up from the first prompt to cron."""

    def __init__(
        self,
        config: Config,
        operator: Operator,
        runner: Optional[ProcessRunner] = None,
        templater: Optional[ConfigTemplater] = None,
        backup: Optional[BackupManager] = None,
        sleep: Callable[[float], None] = time.sleep,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.operator = operator
        self.logger = logger or get_logger()
        self.runner = runner or ProcessRunner(config.watch_timeout, self.logger)
        self.templater = templater or ConfigTemplater(self.logger)
        self.backup = backup
        self.sleep = sleep
        self.step_count = 0
        self.snapshot_path: Optional[Path] = None

    # ------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------
    def run(self) -> ExitCode:
        try:
            self.config.require_home()
        except MissingEnvironment as e:
            error_banner(str(e))
            self.logger.error(str(e))
            return ExitCode.MISSING_HOME

        if self.backup is None:
            self.backup = BackupManager(
                self.config.backup_root, self.operator, logger=self.logger
            )

        warning_banner(
            "Your existing nginx configuration will be replaced! The program will make "
            "a backup of your current configuration in your HOME folder."
        )
        if self.operator.confirm("Do you want to continue?") is not True:
            self.logger.info("Operator declined to continue.")
            return ExitCode.CONFIRM_CANCELLED

        self.operator.print()
        domain = self.operator.ask("Provide your domain")
        if domain is None:
            self.logger.info("Operator cancelled at the domain prompt.")
            return ExitCode.DOMAIN_CANCELLED

        email = self.operator.ask("Provide your e-mail")
        if email is None:
            self.logger.info("Operator cancelled at the e-mail prompt.")
            return ExitCode.EMAIL_CANCELLED

        self.logger.info(f"Configuring {domain} (contact {email}, staging={self.config.staging})")
        if self.config.staging:
            print_warning(
                "Staging mode: the certificate request is a dry run against the "
                "Let's Encrypt staging authority."
            )
        return self.execute(self.build_steps(domain, email))

    def execute(self, steps: Sequence[Step]) -> ExitCode:
        """Run steps in order, stopping at the first hard failure."""
        for step in steps:
            self.announce(step.label)
            reason = None
            try:
                ok = step.action()
            except ConfiguratorError as e:
                ok = False
                reason = str(e)

            if ok:
                self.logger.info(f"Step succeeded: {step.label}")
                if step.success_message:
                    print_success(step.success_message)
                continue

            message = step.failure_message if reason is None else f"{step.failure_message}\n\n{reason}"
            error_banner(message)
            if step.soft_fail:
                self.logger.warning(f"Step failed, continuing: {step.label} ({reason or 'non-zero exit'})")
                continue

            self.logger.error(f"Step failed: {step.label} ({reason or 'non-zero exit'}), exit code {int(step.exit_code)}")
            if self.snapshot_path is not None:
                print_warning(f"Your previous nginx configuration is saved in {self.snapshot_path}")
            return step.exit_code

        success_banner(
            "Successfully configure Let's Encrypt! To add new location entry to the nginx "
            "configuration, just add new .location.conf file inside "
            f"{self.config.snippets_dir}/ folder."
        )
        self.logger.info("Configuration finished successfully.")
        return ExitCode.OK

    def announce(self, label: str) -> None:
        self.step_count += 1
        print_section(f"{self.step_count:02d} => {label}")

    # ------------------------------------------------------------
    # Step list
    # ------------------------------------------------------------
    def build_steps(self, domain: str, email: str) -> List[Step]:
        cfg = self.config
        return [
            Step(
                "Running apt-get update...",
                lambda: self.runner.execute("apt-get", ["update"]),
                ExitCode.APT_UPDATE,
                f"Failed to run apt-get update command! {NOT_ROOT_HINT}",
                "apt-get update command finished!",
            ),
            Step(
                "Installing nginx...",
                lambda: self.runner.execute("apt-get", ["install", "-y", "nginx"]),
                ExitCode.INSTALL_NGINX,
                f"Failed to install nginx package! {NOT_ROOT_HINT}",
                "nginx package installed!",
            ),
            Step(
                "Installing Let's Encrypt...",
                lambda: self.runner.execute("apt-get", ["install", "-y", "letsencrypt"]),
                ExitCode.INSTALL_CERTBOT,
                f"Failed to install Let's Encrypt package! {NOT_ROOT_HINT}",
                "Let's Encrypt package installed!",
            ),
            Step(
                "Backing up nginx configuration...",
                self.backup_nginx_config,
                ExitCode.BACKUP,
                "Failed to back up nginx configuration!",
            ),
            Step(
                "Creating nginx sites-available configuration...",
                lambda: self.write_template(CHALLENGE_TEMPLATE, cfg.default_site_path),
                ExitCode.CHALLENGE_CONFIG,
                "Failed to create nginx sites-available configuration!",
                "Configuration file created!",
            ),
            Step(
                "Checking nginx configuration...",
                self.check_nginx_config,
                ExitCode.CHALLENGE_CONFIG_TEST,
                "Failed nginx configuration checker test!",
                "nginx configuration checker test is passed!",
            ),
            Step(
                "Restarting nginx...",
                lambda: self.restart_service("nginx"),
                ExitCode.CHALLENGE_RESTART,
                "Failed to restart nginx service!",
                "nginx restarted!",
            ),
            Step(
                "Requesting SSL certificate...",
                lambda: self.runner.execute("letsencrypt", self.certificate_args(domain, email)),
                ExitCode.CERTIFICATE,
                "Failed to obtain SSL certificate from Let's Encrypt!",
                "SSL certificate obtained!",
            ),
            Step(
                f"Generating strong Diffie-Hellman {cfg.dhparam_bits}-bit group...",
                lambda: self.runner.execute(
                    "openssl", ["dhparam", "-out", cfg.dhparam_path, str(cfg.dhparam_bits)]
                ),
                ExitCode.DHPARAM,
                f"Failed to generate strong Diffie-Hellman {cfg.dhparam_bits}-bit group!",
                f"Diffie-Hellman {cfg.dhparam_bits}-bit group generated!",
            ),
            Step(
                "Copying nginx SSL configuration file...",
                lambda: self.write_ssl_snippets(domain),
                ExitCode.SSL_SNIPPETS,
                "Failed to copy nginx SSL configuration file!",
            ),
            Step(
                "Generating new nginx sites-available configuration...",
                lambda: self.write_template(FINAL_SITE_TEMPLATE, cfg.default_site_path, domain),
                ExitCode.FINAL_CONFIG,
                "Failed to generate new nginx sites-available configuration!",
                "Configuration file created!",
            ),
            Step(
                "Checking nginx configuration...",
                self.check_nginx_config,
                ExitCode.FINAL_CONFIG_TEST,
                "Failed nginx configuration checker test!",
                "nginx configuration checker test is passed!",
            ),
            Step(
                "Restarting nginx...",
                lambda: self.restart_service("nginx"),
                ExitCode.FINAL_RESTART,
                "Failed to restart nginx service!",
                "nginx restarted!",
            ),
            Step(
                "Scheduling Let's Encrypt to auto renew the certificate...",
                lambda: self.write_template(CRON_TEMPLATE, cfg.cron_file_path),
                None,
                "Failed to schedule the auto renewal of the certificate! "
                "Please do this manually using crontab -e command.",
                "Renewal schedule created!",
                soft_fail=True,
            ),
            Step(
                "Restarting cron...",
                lambda: self.restart_service("cron"),
                None,
                "Failed to restart cron service!",
                "cron restarted!",
                soft_fail=True,
            ),
        ]

    # ------------------------------------------------------------
    # Step actions
    # ------------------------------------------------------------
    def certificate_args(self, domain: str, email: str) -> List[str]:
        args = [
            "certonly",
            "--non-interactive",
            "--authenticator",
            "webroot",
            f"--webroot-path={self.config.webroot}",
            "--domains",
            ",".join(derive_alt_names(domain)),
            "--email",
            email,
            "--agree-tos",
        ]
        if self.config.staging:
            args += ["--staging", "--dry-run"]
        return args

    def backup_nginx_config(self) -> bool:
        self.snapshot_path = self.backup.snapshot(self.config.nginx_dir)
        if self.snapshot_path is not None:
            print_success("nginx configuration backed up to HOME folder!")
        return True

    def write_template(self, template_name: str, destination: Path, *values: str) -> bool:
        self.templater.materialize(self.config.template(template_name), destination, values)
        return True

    def write_ssl_snippets(self, domain: str) -> bool:
        cfg = self.config
        for template_name, destination in (
            (SSL_DOMAIN_TEMPLATE, cfg.ssl_domain_snippet_path(domain)),
            (SSL_PARAMS_TEMPLATE, cfg.ssl_params_snippet_path),
        ):
            self.write_template(template_name, destination, domain)
            print_success(f"Created file {destination.name}!")
        return True

    def check_nginx_config(self) -> bool:
        return self.runner.execute_watching(
            "nginx", ["-t"], NGINX_TEST_SUCCESS_MARKER, NGINX_TEST_FAIL_MARKER
        )

    def restart_service(self, service: str) -> bool:
        if not self.runner.execute("service", [service, "restart"]):
            return False
        self.sleep(self.config.restart_settle_seconds)
        return True
