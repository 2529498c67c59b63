"""Tests for tearing down one application's footprint."""

from __future__ import annotations

import pytest

from bluegreen.core.destroyer import Destroyer
from bluegreen.models.layout import HostLayout
from bluegreen.services.nginx import ProxyConfigurator, Upstream, render_site


@pytest.fixture
def deployed(layout: HostLayout, fake_host, nginx_tree):
    """A host with both instances running, a site, the zone and an env file."""
    proxy = ProxyConfigurator(layout, fake_host.runner, stamp=lambda: "1")
    proxy.ensure_rate_limit_zone("10r/s")
    proxy.apply_site(render_site("demo", [Upstream(port=8081)], server_name="a.example"))
    (layout.releases_dir / "release-1").mkdir(parents=True)
    layout.env_dir.mkdir(parents=True)
    layout.env_file.write_text("JAVA_OPTS=\n")
    layout.unit_template.parent.mkdir(parents=True)
    layout.unit_template.write_text("[Unit]\n")
    fake_host.running.update({fake_host.unit(8081), fake_host.unit(8082)})
    fake_host.runner.on(
        "getent", "passwd", "demo",
        stdout=f"demo:x:998:998::{layout.install_dir}:/usr/sbin/nologin\n",
    )
    return fake_host


class TestDestroyer:
    def test_removes_everything_owned(self, layout: HostLayout, deployed):
        summary = Destroyer(layout, deployed.runner, (8081, 8082)).destroy()

        assert summary.domain == "a.example"
        assert set(summary.stopped_units) == {deployed.unit(8081), deployed.unit(8082)}
        assert not deployed.running
        assert summary.unit_template_removed and not layout.unit_template.exists()
        assert summary.site_removed
        assert not layout.nginx_site.exists() and not layout.nginx_link.is_symlink()
        assert summary.rate_limit_removed
        assert "zone=reqs" not in layout.nginx_conf.read_text()
        assert summary.nginx_reloaded
        assert summary.env_removed and not layout.env_dir.exists()
        assert summary.install_dir_removed and not layout.install_dir.exists()
        assert summary.user_removed
        assert deployed.runner.commands("userdel") == [["userdel", "demo"]]

    def test_never_touches_firewall_or_ssh(self, layout: HostLayout, deployed):
        Destroyer(layout, deployed.runner, (8081, 8082)).destroy(clean_certs=True)
        touched = {c[0] for c in deployed.runner.calls}
        assert "ufw" not in touched
        assert not any(c[-1].startswith("ssh") for c in deployed.runner.commands("systemctl"))
        assert not deployed.runner.ran("env", "DEBIAN_FRONTEND=noninteractive", "apt-get")

    def test_certificate_only_deleted_on_request(self, layout: HostLayout, deployed):
        Destroyer(layout, deployed.runner, (8081, 8082)).destroy()
        assert not deployed.runner.ran("certbot")

    def test_clean_certs_uses_detected_domain(self, layout: HostLayout, deployed):
        summary = Destroyer(layout, deployed.runner, (8081, 8082)).destroy(clean_certs=True)
        assert summary.certificate_deleted
        assert deployed.runner.commands("certbot") == [
            ["certbot", "delete", "--cert-name", "a.example", "-n"]
        ]

    def test_keep_backups_zero_leaves_no_new_backup(self, layout: HostLayout, fake_host, nginx_tree):
        stamps = iter(["1", "2"])
        ProxyConfigurator(layout, fake_host.runner, stamp=lambda: next(stamps)).ensure_rate_limit_zone("10r/s")
        proxy = ProxyConfigurator(layout, fake_host.runner, stamp=lambda: next(stamps))

        Destroyer(layout, fake_host.runner, (8081, 8082), proxy=proxy).destroy(keep_backups=0)

        backups = sorted(p.name for p in layout.nginx_root.glob("nginx.conf.bak-*"))
        assert backups == ["nginx.conf.bak-1"]

    def test_foreign_user_is_kept(self, layout: HostLayout, deployed):
        deployed.runner.on(
            "getent", "passwd", "demo", stdout="demo:x:1000:1000::/home/demo:/bin/bash\n"
        )
        summary = Destroyer(layout, deployed.runner, (8081, 8082)).destroy()
        assert summary.user_removed is False
        assert not deployed.runner.ran("userdel")

    def test_idempotent_on_clean_host(self, layout: HostLayout, fake_host):
        summary = Destroyer(layout, fake_host.runner, (8081, 8082)).destroy()
        assert not summary.site_removed
        assert not summary.install_dir_removed
        assert summary.domain is None
