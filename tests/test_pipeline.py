"""
Tests for the provisioning pipeline: ordering, halting, exit codes and files.
"""

from pathlib import Path

import pytest

from letsencrypt_configurator.errors import ExitCode, IOFailure, ProcessStartError
from letsencrypt_configurator.pipeline import Configurator, Step, derive_alt_names
from letsencrypt_configurator.templater import ConfigTemplater
from tests.conftest import FIXED_NOW, FakeRunner, scripted_operator

HAPPY_ANSWERS = ["y", "example.com", "a@b.com"]


def build(config, make_backup, answers=HAPPY_ANSWERS, runner=None, templater=None, with_backup=True):
    operator = scripted_operator(answers)
    runner = runner or FakeRunner()
    configurator = Configurator(
        config,
        operator,
        runner=runner,
        templater=templater,
        backup=make_backup(config, operator) if with_backup else None,
        sleep=lambda seconds: None,
    )
    return configurator, runner, operator


class TestDeriveAltNames:
    def test_bare_domain_gets_www_variant(self):
        assert derive_alt_names("example.com") == ("example.com", "www.example.com")

    def test_domain_with_www_is_left_alone(self):
        assert derive_alt_names("www.example.com") == ("www.example.com",)

    def test_www_anywhere_counts(self):
        assert derive_alt_names("mywww.org") == ("mywww.org",)


class TestHappyPath:
    def test_completes_with_zero(self, config, make_backup):
        configurator, runner, _ = build(config, make_backup)

        assert configurator.run() == ExitCode.OK

    def test_runs_tools_in_order(self, config, make_backup):
        configurator, runner, _ = build(config, make_backup)
        configurator.run()

        assert [call.split()[0:2] for call in runner.calls] == [
            ["apt-get", "update"],
            ["apt-get", "install"],
            ["apt-get", "install"],
            ["nginx", "-t"],
            ["service", "nginx"],
            ["letsencrypt", "certonly"],
            ["openssl", "dhparam"],
            ["nginx", "-t"],
            ["service", "nginx"],
            ["service", "cron"],
        ]

    def test_certificate_request_covers_both_names(self, config, make_backup):
        configurator, runner, _ = build(config, make_backup)
        configurator.run()

        request = next(call for call in runner.calls if call.startswith("letsencrypt"))
        assert "--domains example.com,www.example.com" in request
        assert "--email a@b.com" in request
        assert "--non-interactive" in request
        assert "--staging" not in request

    def test_writes_snippets_and_final_site(self, config, make_backup):
        configurator, _, _ = build(config, make_backup)
        configurator.run()

        domain_snippet = config.snippets_dir / "ssl-example.com.conf"
        assert "/etc/letsencrypt/live/example.com/fullchain.pem" in domain_snippet.read_text()
        assert "example.com" not in config.ssl_params_snippet_path.read_text()

        site = config.default_site_path.read_text()
        assert "server_name example.com www.example.com;" in site
        assert "include snippets/ssl-example.com.conf;" in site
        assert "include snippets/ssl-params.conf;" in site

    def test_writes_renewal_schedule(self, config, make_backup):
        configurator, _, _ = build(config, make_backup)
        configurator.run()

        assert "renew" in config.cron_file_path.read_text()

    def test_backs_up_existing_configuration(self, config, make_backup):
        configurator, _, _ = build(config, make_backup)
        configurator.run()

        snapshot = config.home_dir / "nginx-backup" / FIXED_NOW.strftime("%Y%m%d%H%M")
        assert configurator.snapshot_path == snapshot
        assert (snapshot / "sites-available" / "default").read_text() == "server { listen 80; }\n"
        assert (snapshot / "nginx.conf").exists()

    def test_numbers_every_step(self, config, make_backup):
        configurator, _, _ = build(config, make_backup)
        configurator.run()

        assert configurator.step_count == 15

    def test_staging_adds_dry_run_flags(self, config, make_backup):
        config.staging = True
        configurator, runner, _ = build(config, make_backup)

        assert configurator.run() == ExitCode.OK
        request = next(call for call in runner.calls if call.startswith("letsencrypt"))
        assert request.endswith("--staging --dry-run")

    def test_www_domain_requests_single_name(self, config, make_backup):
        configurator, runner, _ = build(config, make_backup, ["y", "www.example.com", "a@b.com"])
        configurator.run()

        request = next(call for call in runner.calls if call.startswith("letsencrypt"))
        assert "--domains www.example.com " in request


class TestOperatorPrompts:
    def test_declining_confirmation_touches_nothing(self, config, make_backup):
        configurator, runner, operator = build(config, make_backup, ["n"])
        before = sorted(p.name for p in config.nginx_dir.rglob("*"))

        assert configurator.run() == ExitCode.CONFIRM_CANCELLED
        assert runner.calls == []
        assert sorted(p.name for p in config.nginx_dir.rglob("*")) == before
        assert not config.backup_root.exists()
        assert not config.cron_dir.exists()

    def test_cancel_word_cancels(self, config, make_backup):
        configurator, runner, _ = build(config, make_backup, ["CANCEL"])

        assert configurator.run() == ExitCode.CONFIRM_CANCELLED
        assert runner.calls == []

    def test_invalid_answer_asks_again(self, config, make_backup):
        configurator, _, _ = build(config, make_backup, ["maybe", " Y ", "example.com", "a@b.com"])

        assert configurator.run() == ExitCode.OK

    def test_closed_input_cancels(self, config, make_backup):
        configurator, _, _ = build(config, make_backup, [])

        assert configurator.run() == ExitCode.CONFIRM_CANCELLED

    def test_blank_domain_cancels(self, config, make_backup):
        configurator, runner, _ = build(config, make_backup, ["y", "   "])

        assert configurator.run() == ExitCode.DOMAIN_CANCELLED
        assert runner.calls == []

    def test_blank_email_cancels(self, config, make_backup):
        configurator, runner, _ = build(config, make_backup, ["y", "example.com", ""])

        assert configurator.run() == ExitCode.EMAIL_CANCELLED
        assert runner.calls == []

    def test_missing_home_stops_before_prompting(self, config, make_backup):
        config.home_dir = None
        configurator, runner, operator = build(config, make_backup, with_backup=False)

        assert configurator.run() == ExitCode.MISSING_HOME
        assert operator.pending == HAPPY_ANSWERS
        assert runner.calls == []


class TestHardFailures:
    @pytest.mark.parametrize(
        "fail, expected, calls_made",
        [
            ({"apt-get update": True}, ExitCode.APT_UPDATE, 1),
            ({"apt-get install -y nginx": True}, ExitCode.INSTALL_NGINX, 2),
            ({"apt-get install -y letsencrypt": True}, ExitCode.INSTALL_CERTBOT, 3),
            ({"nginx -t": [1]}, ExitCode.CHALLENGE_CONFIG_TEST, 4),
            ({"service nginx restart": [1]}, ExitCode.CHALLENGE_RESTART, 5),
            ({"letsencrypt certonly": True}, ExitCode.CERTIFICATE, 6),
            ({"openssl dhparam": True}, ExitCode.DHPARAM, 7),
            ({"nginx -t": [2]}, ExitCode.FINAL_CONFIG_TEST, 8),
            ({"service nginx restart": [2]}, ExitCode.FINAL_RESTART, 9),
        ],
    )
    def test_halts_at_first_failing_tool(self, config, make_backup, fail, expected, calls_made):
        configurator, runner, _ = build(config, make_backup, runner=FakeRunner(fail=fail))

        assert configurator.run() == expected
        assert len(runner.calls) == calls_made
        assert not config.cron_file_path.exists()

    def test_exit_codes_are_unique(self):
        values = [int(code) for code in ExitCode]
        assert len(values) == len(set(values))

    def test_final_config_test_failure_keeps_files(self, config, make_backup):
        configurator, runner, _ = build(config, make_backup, runner=FakeRunner(fail={"nginx -t": [2]}))

        assert configurator.run() == ExitCode.FINAL_CONFIG_TEST
        assert "include snippets/ssl-example.com.conf;" in config.default_site_path.read_text()
        snapshot = configurator.snapshot_path
        assert (snapshot / "sites-available" / "default").read_text() == "server { listen 80; }\n"
        assert runner.calls.count("service nginx restart") == 1

    def test_tool_that_cannot_start_uses_step_code(self, config, make_backup):
        runner = FakeRunner(raises={"openssl": ProcessStartError("Unable to start openssl")})
        configurator, _, _ = build(config, make_backup, runner=runner)

        assert configurator.run() == ExitCode.DHPARAM
        assert runner.calls[-1].startswith("openssl")

    def test_declined_backup_halts_before_config_is_written(self, config, make_backup, tmp_path):
        config.nginx_dir = tmp_path / "missing-nginx"
        configurator, runner, _ = build(config, make_backup, HAPPY_ANSWERS + ["n"])

        assert configurator.run() == ExitCode.BACKUP
        assert len(runner.calls) == 3
        assert not config.default_site_path.exists()

    def test_accepted_missing_backup_continues(self, config, make_backup, tmp_path):
        config.nginx_dir = tmp_path / "fresh-nginx"
        configurator, _, _ = build(config, make_backup, HAPPY_ANSWERS + ["y"])

        assert configurator.run() == ExitCode.OK
        assert configurator.snapshot_path is None
        assert config.default_site_path.exists()

    def test_missing_challenge_template(self, config, make_backup, tmp_path):
        config.template_dir = tmp_path / "no-templates"
        configurator, runner, _ = build(config, make_backup)

        assert configurator.run() == ExitCode.CHALLENGE_CONFIG
        assert len(runner.calls) == 3

    def test_snippet_write_failure(self, config, make_backup):
        class FailingSnippets:
            def __init__(self, real):
                self.real = real

            def materialize(self, template_path, destination_path, substitutions=()):
                if Path(destination_path).parent.name == "snippets":
                    raise IOFailure("disk full")
                return self.real.materialize(template_path, destination_path, substitutions)

        configurator, runner, _ = build(
            config, make_backup, templater=FailingSnippets(ConfigTemplater())
        )

        assert configurator.run() == ExitCode.SSL_SNIPPETS
        assert runner.calls[-1].startswith("openssl")


class TestSoftFailures:
    def test_cron_restart_failure_still_succeeds(self, config, make_backup):
        configurator, runner, _ = build(
            config, make_backup, runner=FakeRunner(fail={"service cron restart": True})
        )

        assert configurator.run() == ExitCode.OK
        assert runner.calls[-1] == "service cron restart"

    def test_schedule_failure_still_succeeds(self, config, make_backup):
        config.cron_dir.parent.mkdir(parents=True, exist_ok=True)
        config.cron_dir.write_text("not a directory")
        configurator, runner, _ = build(config, make_backup)

        assert configurator.run() == ExitCode.OK
        assert runner.calls[-1] == "service cron restart"


class TestExecuteLoop:
    def test_soft_step_does_not_stop_later_steps(self, config, make_backup):
        configurator, _, _ = build(config, make_backup)
        ran = []
        steps = [
            Step("first", lambda: ran.append("first") or False, None, "soft", soft_fail=True),
            Step("second", lambda: ran.append("second") or True, ExitCode.APT_UPDATE, "hard"),
        ]

        assert configurator.execute(steps) == ExitCode.OK
        assert ran == ["first", "second"]

    def test_hard_step_stops_loop(self, config, make_backup):
        configurator, _, _ = build(config, make_backup)
        ran = []
        steps = [
            Step("first", lambda: ran.append("first") or False, ExitCode.DHPARAM, "hard"),
            Step("second", lambda: ran.append("second") or True, ExitCode.APT_UPDATE, "hard"),
        ]

        assert configurator.execute(steps) == ExitCode.DHPARAM
        assert ran == ["first"]
        assert configurator.step_count == 1
