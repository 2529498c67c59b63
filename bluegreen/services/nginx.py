"""Reverse Proxy Configurator — renders, validates and installs the Nginx site.

Every change follows the same discipline: back up what is about to change,
write, run ``nginx -t``, restore the backup if the test fails, reload only
on success.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from textwrap import dedent, indent

from pydantic import BaseModel, ConfigDict

from bluegreen.core.errors import ProxyConfigError
from bluegreen.core.release_manager import atomic_symlink, atomic_write_text
from bluegreen.core.runner import CommandRunner
from bluegreen.models.layout import HostLayout

logger = logging.getLogger(__name__)

RATE_LIMIT_ZONE = "reqs"
# Matches only the exact zone line this tool injects.
RATE_LIMIT_LINE_RE = re.compile(
    r"^\s*limit_req_zone\s+\$binary_remote_addr\s+zone=reqs:10m\s+rate=(?P<rate>\S+);\s*$"
)
BACKUP_SUFFIX = ".bak-"


class Upstream(BaseModel):
    """One ``server`` entry of the upstream block."""

    model_config = ConfigDict(frozen=True)

    port: int
    weight: int | None = None


class TlsPaths(BaseModel):
    """Certificate files issued by the ACME client."""

    model_config = ConfigDict(frozen=True)

    fullchain: Path
    privkey: Path


def compute_upstreams(
    new_port: int, old_port: int | None, canary_percent: int = 0
) -> list[Upstream]:
    """Upstream entries for a cutover.

    ``0 < canary_percent < 100`` with a distinct old port yields a weighted
    pair (``new = canary_percent``, ``old = 100 - canary_percent``); every
    other case is a single entry pointing at *new_port*.
    """
    if old_port is None or old_port == new_port or not 0 < canary_percent < 100:
        return [Upstream(port=new_port)]
    return [
        Upstream(port=new_port, weight=canary_percent),
        Upstream(port=old_port, weight=100 - canary_percent),
    ]


def upstream_name(app_name: str) -> str:
    return f"{app_name.replace('.', '_')}_backend"


def _location_block(app_name: str, rate_burst: int) -> str:
    return dedent(f"""\
        client_max_body_size 10m;

        gzip on;
        gzip_comp_level 5;
        gzip_min_length 1024;
        gzip_proxied any;
        gzip_types text/plain text/css application/json application/javascript application/xml image/svg+xml;

        add_header X-Content-Type-Options "nosniff" always;
        add_header X-Frame-Options "DENY" always;
        add_header Referrer-Policy "strict-origin-when-cross-origin" always;

        location / {{
            limit_req zone={RATE_LIMIT_ZONE} burst={rate_burst} nodelay;
            proxy_pass http://{upstream_name(app_name)};
            proxy_http_version 1.1;
            proxy_set_header Connection "";
            proxy_set_header Host $host;
            proxy_set_header X-Real-IP $remote_addr;
            proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;
            proxy_set_header X-Forwarded-Proto $scheme;
            proxy_connect_timeout 5s;
            proxy_read_timeout 60s;
        }}
        """)


def render_site(
    app_name: str,
    upstreams: list[Upstream],
    *,
    server_name: str = "_",
    rate_burst: int = 20,
    tls: TlsPaths | None = None,
) -> str:
    """Render the complete ``sites-available/<app>`` file."""
    if not upstreams:
        raise ValueError("at least one upstream is required")

    servers = "\n".join(
        f"    server 127.0.0.1:{u.port}"
        + (f" weight={u.weight}" if u.weight is not None else "")
        + ";"
        for u in upstreams
    )
    body = indent(_location_block(app_name, rate_burst), "    ")

    parts = [
        f"# Managed by bluegreen for {app_name}; re-rendered on every deploy.\n",
        f"upstream {upstream_name(app_name)} {{\n{servers}\n    keepalive 16;\n}}\n",
    ]

    if tls is None:
        parts.append(
            "server {\n"
            "    listen 80;\n"
            "    listen [::]:80;\n"
            f"    server_name {server_name};\n\n"
            f"{body}"
            "}\n"
        )
    else:
        parts.append(
            "server {\n"
            "    listen 80;\n"
            "    listen [::]:80;\n"
            f"    server_name {server_name};\n\n"
            "    location /.well-known/acme-challenge/ {\n"
            "        root /var/www/html;\n"
            "    }\n\n"
            "    location / {\n"
            "        return 301 https://$host$request_uri;\n"
            "    }\n"
            "}\n"
        )
        parts.append(
            "server {\n"
            "    listen 443 ssl;\n"
            "    listen [::]:443 ssl;\n"
            f"    server_name {server_name};\n\n"
            f"    ssl_certificate {tls.fullchain};\n"
            f"    ssl_certificate_key {tls.privkey};\n"
            "    ssl_protocols TLSv1.2 TLSv1.3;\n"
            "    ssl_prefer_server_ciphers on;\n"
            "    ssl_session_cache shared:SSL:10m;\n"
            '    add_header Strict-Transport-Security "max-age=31536000; includeSubDomains" always;\n\n'
            f"{body}"
            "}\n"
        )
    return "\n".join(parts)


def rate_limit_line(rate: str) -> str:
    return f"limit_req_zone $binary_remote_addr zone={RATE_LIMIT_ZONE}:10m rate={rate};"


def inject_rate_limit_zone(conf_text: str, rate: str) -> str | None:
    """Return *conf_text* with the zone line added inside ``http {``.

    An injected line with a different rate is rewritten in place. Returns
    ``None`` when an identical zone is already present.
    """
    lines = conf_text.splitlines(keepends=True)
    for idx, line in enumerate(lines):
        match = RATE_LIMIT_LINE_RE.match(line)
        if match is None:
            continue
        if match.group("rate") == rate:
            return None
        lead = line[: len(line) - len(line.lstrip())]
        lines[idx] = f"{lead}{rate_limit_line(rate)}\n"
        return "".join(lines)
    for idx, line in enumerate(lines):
        if re.match(r"^\s*http\s*\{", line):
            lines.insert(idx + 1, f"    {rate_limit_line(rate)}\n")
            return "".join(lines)
    raise ProxyConfigError("nginx.conf has no 'http {' block to extend")


def strip_rate_limit_zone(conf_text: str) -> tuple[str, int]:
    """Remove only the injected zone line(s); returns (text, removed_count)."""
    kept: list[str] = []
    removed = 0
    for line in conf_text.splitlines(keepends=True):
        if RATE_LIMIT_LINE_RE.match(line):
            removed += 1
            continue
        kept.append(line)
    return "".join(kept), removed


def server_name_from_site(site_text: str) -> str | None:
    """First non-``_`` name of the first ``server_name`` directive."""
    for line in site_text.splitlines():
        tokens = line.strip().rstrip(";").split()
        if tokens and tokens[0] == "server_name":
            for name in tokens[1:]:
                if name != "_":
                    return name
    return None


def _backup_stamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")


class ProxyConfigurator:
    """Installs the site, manages the shared rate-limit zone, reloads Nginx.

    Parameters
    ----------
    layout:
        Host paths for the application.
    runner:
        External command collaborator.
    stamp:
        Returns the suffix used for ``nginx.conf.bak-<stamp>`` backups.
    """

    def __init__(
        self,
        layout: HostLayout,
        runner: CommandRunner,
        stamp: Callable[[], str] = _backup_stamp,
    ) -> None:
        self._layout = layout
        self._runner = runner
        self._stamp = stamp

    # ------------------------------------------------------------------
    # Nginx process
    # ------------------------------------------------------------------

    def test(self) -> bool:
        """``nginx -t``; True when the configuration is valid."""
        result = self._runner.run(["nginx", "-t"], check=False)
        if not result.ok:
            logger.error("nginx -t failed: %s", result.stderr.strip())
        return result.ok

    def reload(self) -> None:
        self._runner.run(["systemctl", "reload", "nginx"])
        logger.info("Reloaded nginx")

    # ------------------------------------------------------------------
    # TLS discovery
    # ------------------------------------------------------------------

    def tls_paths(self, domain: str) -> TlsPaths | None:
        """Certificate paths for *domain* when certbot has issued one."""
        if not domain:
            return None
        cert_dir = self._layout.certificate_dir(domain)
        paths = TlsPaths(
            fullchain=cert_dir / "fullchain.pem",
            privkey=cert_dir / "privkey.pem",
        )
        if paths.fullchain.exists() and paths.privkey.exists():
            return paths
        return None

    # ------------------------------------------------------------------
    # Global rate-limit zone
    # ------------------------------------------------------------------

    def _backup_conf(self) -> Path:
        conf = self._layout.nginx_conf
        backup = conf.with_name(f"{conf.name}{BACKUP_SUFFIX}{self._stamp()}")
        backup.write_bytes(conf.read_bytes())
        return backup

    def ensure_rate_limit_zone(self, rate: str) -> bool:
        """Inject the ``zone=reqs`` line into ``nginx.conf``, or update its rate.

        Returns True when the file changed. Restores the backup and raises
        ``ProxyConfigError`` when the result fails ``nginx -t``.
        """
        conf = self._layout.nginx_conf
        if not conf.is_file():
            raise ProxyConfigError(f"{conf} not found; is nginx installed?")
        updated = inject_rate_limit_zone(conf.read_text(encoding="utf-8"), rate)
        if updated is None:
            return False

        backup = self._backup_conf()
        atomic_write_text(conf, updated)
        if not self.test():
            atomic_write_text(conf, backup.read_text(encoding="utf-8"))
            raise ProxyConfigError(
                f"Rate-limit zone rejected by nginx -t; restored {conf} from {backup.name}"
            )
        logger.info("Set rate-limit zone (%s) in %s", rate, conf)
        return True

    def remove_rate_limit_zone(self, keep_backups: int = 1) -> bool:
        """Delete only the injected zone line, keeping ``keep_backups`` backups.

        Restores the backup when ``nginx -t`` fails afterwards. Returns True
        when the line was removed and kept.
        """
        conf = self._layout.nginx_conf
        if not conf.is_file():
            return False
        stripped, removed = strip_rate_limit_zone(conf.read_text(encoding="utf-8"))
        if not removed:
            return False

        backup = self._backup_conf()
        atomic_write_text(conf, stripped)
        if not self.test():
            logger.warning("nginx -t failed; restoring %s from %s", conf, backup.name)
            atomic_write_text(conf, backup.read_text(encoding="utf-8"))
            backup.unlink(missing_ok=True)
            return False

        if keep_backups == 0:
            backup.unlink(missing_ok=True)
        else:
            self.prune_backups(keep_backups)
        return True

    def prune_backups(self, keep: int) -> list[Path]:
        """Keep only the newest *keep* ``nginx.conf.bak-*`` files."""
        conf = self._layout.nginx_conf
        backups = sorted(
            conf.parent.glob(f"{conf.name}{BACKUP_SUFFIX}*"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        removed = backups[keep:]
        for path in removed:
            path.unlink(missing_ok=True)
        return removed

    # ------------------------------------------------------------------
    # Site
    # ------------------------------------------------------------------

    def apply_site(self, content: str) -> None:
        """Install *content* as the site, validate, then reload.

        On a failed ``nginx -t`` the previous site (or its absence) is
        restored and ``ProxyConfigError`` is raised; nginx is not reloaded.
        """
        site = self._layout.nginx_site
        link = self._layout.nginx_link
        previous = site.read_text(encoding="utf-8") if site.is_file() else None
        link_existed = link.is_symlink()

        atomic_write_text(site, content)
        link.parent.mkdir(parents=True, exist_ok=True)
        atomic_symlink(link, site)

        if not self.test():
            if previous is None:
                site.unlink(missing_ok=True)
            else:
                atomic_write_text(site, previous)
            if not link_existed:
                link.unlink(missing_ok=True)
            raise ProxyConfigError(
                f"Site {site.name} rejected by nginx -t; previous configuration restored"
            )

        default = self._layout.nginx_default_link
        if default.is_symlink() or default.exists():
            default.unlink()
            logger.info("Removed default site %s", default)

        self.reload()

    def remove_site(self) -> list[Path]:
        """Remove the enabled symlink and the site file; returns what was removed."""
        removed: list[Path] = []
        for path in (self._layout.nginx_link, self._layout.nginx_site):
            if path.is_symlink() or path.exists():
                path.unlink()
                removed.append(path)
        return removed

    def current_server_name(self) -> str | None:
        site = self._layout.nginx_site
        if not site.is_file():
            return None
        return server_name_from_site(site.read_text(encoding="utf-8"))
