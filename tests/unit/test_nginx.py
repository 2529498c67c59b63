"""Tests for site rendering and the guarded Nginx apply cycle."""

from __future__ import annotations

from pathlib import Path

import pytest

from bluegreen.core.errors import ProxyConfigError
from bluegreen.models.layout import HostLayout
from bluegreen.services.nginx import (
    ProxyConfigurator,
    TlsPaths,
    Upstream,
    compute_upstreams,
    inject_rate_limit_zone,
    render_site,
    server_name_from_site,
    strip_rate_limit_zone,
)

ZONE = "limit_req_zone $binary_remote_addr zone=reqs:10m rate=10r/s;"


class TestComputeUpstreams:
    def test_standard_is_single_entry(self):
        assert compute_upstreams(8082, 8081, 0) == [Upstream(port=8082)]

    def test_canary_split(self):
        assert compute_upstreams(8082, 8081, 20) == [
            Upstream(port=8082, weight=20),
            Upstream(port=8081, weight=80),
        ]

    @pytest.mark.parametrize("percent", [0, 100])
    def test_boundaries_are_full_cutover(self, percent: int):
        assert compute_upstreams(8082, 8081, percent) == [Upstream(port=8082)]

    def test_no_previous_port(self):
        assert compute_upstreams(8081, None, 30) == [Upstream(port=8081)]


class TestRenderSite:
    def test_http_site(self):
        site = render_site("demo", [Upstream(port=8081)], rate_burst=40)
        assert "upstream demo_backend {" in site
        assert "server 127.0.0.1:8081;" in site
        assert "limit_req zone=reqs burst=40 nodelay;" in site
        assert "proxy_pass http://demo_backend;" in site
        assert 'X-Frame-Options "DENY"' in site
        assert "gzip on;" in site
        assert "listen 443" not in site

    def test_weighted_site(self):
        site = render_site("demo", compute_upstreams(8082, 8081, 10))
        assert "server 127.0.0.1:8082 weight=10;" in site
        assert "server 127.0.0.1:8081 weight=90;" in site

    def test_tls_site(self, tmp_path: Path):
        tls = TlsPaths(fullchain=tmp_path / "fullchain.pem", privkey=tmp_path / "privkey.pem")
        site = render_site("demo", [Upstream(port=8081)], server_name="a.example", tls=tls)
        assert "listen 443 ssl;" in site
        assert "ssl_protocols TLSv1.2 TLSv1.3;" in site
        assert "Strict-Transport-Security" in site
        assert "return 301 https://$host$request_uri;" in site
        assert f"ssl_certificate {tls.fullchain};" in site

    def test_requires_an_upstream(self):
        with pytest.raises(ValueError):
            render_site("demo", [])

    def test_server_name_round_trip(self):
        site = render_site("demo", [Upstream(port=8081)], server_name="a.example")
        assert server_name_from_site(site) == "a.example"
        assert server_name_from_site(render_site("demo", [Upstream(port=8081)])) is None


class TestRateLimitZone:
    def test_inject_inside_http_block(self):
        text = inject_rate_limit_zone("events {}\nhttp {\n    sendfile on;\n}\n", "10r/s")
        assert text is not None
        lines = text.splitlines()
        assert lines[lines.index("http {") + 1].strip() == ZONE

    def test_inject_is_idempotent(self):
        once = inject_rate_limit_zone("http {\n}\n", "10r/s")
        assert inject_rate_limit_zone(once, "10r/s") is None

    def test_changed_rate_rewrites_line_in_place(self):
        conf = f"http {{\n    {ZONE}\n    sendfile on;\n}}\n"
        text = inject_rate_limit_zone(conf, "20r/s")
        assert text is not None
        assert text.splitlines()[1] == "    limit_req_zone $binary_remote_addr zone=reqs:10m rate=20r/s;"
        assert text.count("zone=reqs") == 1
        assert "sendfile on;" in text

    def test_no_http_block(self):
        with pytest.raises(ProxyConfigError):
            inject_rate_limit_zone("events {}\n", "10r/s")

    def test_strip_only_removes_our_line(self):
        text = f"http {{\n    {ZONE}\n    limit_req_zone $binary_remote_addr zone=other:10m rate=1r/s;\n}}\n"
        stripped, removed = strip_rate_limit_zone(text)
        assert removed == 1
        assert "zone=reqs" not in stripped
        assert "zone=other" in stripped


class TestProxyConfigurator:
    @pytest.fixture
    def proxy(self, layout: HostLayout, fake_runner, nginx_tree) -> ProxyConfigurator:
        return ProxyConfigurator(layout, fake_runner, stamp=lambda: "20261019_120000")

    def test_apply_site_installs_and_reloads(self, proxy, layout: HostLayout, fake_runner):
        proxy.apply_site(render_site("demo", [Upstream(port=8081)]))
        assert layout.nginx_site.is_file()
        assert layout.nginx_link.is_symlink()
        assert not layout.nginx_default_link.exists()
        assert fake_runner.ran("nginx", "-t")
        assert fake_runner.ran("systemctl", "reload", "nginx")

    def test_failed_test_restores_previous_site(self, proxy, layout: HostLayout, fake_runner):
        proxy.apply_site(render_site("demo", [Upstream(port=8081)]))
        before = layout.nginx_site.read_text()
        fake_runner.on("nginx", "-t", returncode=1, stderr="emerg")
        reloads = len(fake_runner.commands("systemctl", "reload", "nginx"))

        with pytest.raises(ProxyConfigError):
            proxy.apply_site(render_site("demo", [Upstream(port=8082)]))

        assert layout.nginx_site.read_text() == before
        assert len(fake_runner.commands("systemctl", "reload", "nginx")) == reloads

    def test_failed_first_apply_leaves_no_site(self, proxy, layout: HostLayout, fake_runner):
        fake_runner.on("nginx", "-t", returncode=1)
        with pytest.raises(ProxyConfigError):
            proxy.apply_site(render_site("demo", [Upstream(port=8081)]))
        assert not layout.nginx_site.exists()
        assert not layout.nginx_link.is_symlink()
        assert layout.nginx_default_link.is_symlink()

    def test_rate_limit_zone_added_once_with_backup(self, proxy, layout: HostLayout):
        assert proxy.ensure_rate_limit_zone("10r/s") is True
        assert proxy.ensure_rate_limit_zone("10r/s") is False
        assert layout.nginx_conf.read_text().count("zone=reqs") == 1
        assert (layout.nginx_root / "nginx.conf.bak-20261019_120000").is_file()

    def test_rate_change_is_applied(self, layout: HostLayout, fake_runner, nginx_tree):
        stamps = iter(["1", "2"])
        proxy = ProxyConfigurator(layout, fake_runner, stamp=lambda: next(stamps))
        proxy.ensure_rate_limit_zone("10r/s")

        assert proxy.ensure_rate_limit_zone("20r/s") is True

        conf = layout.nginx_conf.read_text()
        assert "rate=20r/s;" in conf
        assert "rate=10r/s;" not in conf
        assert "rate=10r/s;" in (layout.nginx_root / "nginx.conf.bak-2").read_text()

    def test_rejected_rate_change_restores_conf(self, proxy, layout: HostLayout, fake_runner):
        proxy.ensure_rate_limit_zone("10r/s")
        fake_runner.on("nginx", "-t", returncode=1)
        with pytest.raises(ProxyConfigError):
            proxy.ensure_rate_limit_zone("20r/s")
        assert "rate=10r/s;" in layout.nginx_conf.read_text()

    def test_rejected_zone_restores_conf(self, proxy, layout: HostLayout, fake_runner):
        original = layout.nginx_conf.read_text()
        fake_runner.on("nginx", "-t", returncode=1)
        with pytest.raises(ProxyConfigError):
            proxy.ensure_rate_limit_zone("10r/s")
        assert layout.nginx_conf.read_text() == original

    def test_remove_zone_keeps_requested_backups(self, layout: HostLayout, fake_runner, nginx_tree):
        stamps = iter(["1", "2", "3"])
        proxy = ProxyConfigurator(layout, fake_runner, stamp=lambda: next(stamps))
        proxy.ensure_rate_limit_zone("10r/s")

        assert proxy.remove_rate_limit_zone(keep_backups=0) is True
        assert "zone=reqs" not in layout.nginx_conf.read_text()
        assert not (layout.nginx_root / "nginx.conf.bak-2").exists()
        assert (layout.nginx_root / "nginx.conf.bak-1").exists()

    def test_tls_paths_only_when_issued(self, proxy, layout: HostLayout):
        assert proxy.tls_paths("a.example") is None
        cert_dir = layout.certificate_dir("a.example")
        cert_dir.mkdir(parents=True)
        (cert_dir / "fullchain.pem").write_text("cert")
        (cert_dir / "privkey.pem").write_text("key")
        assert proxy.tls_paths("a.example") is not None
