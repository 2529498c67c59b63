"""Destroyer — removes everything a deploy created for one application.

Scope is strictly the application's own footprint: instances, unit
template, proxy site, the injected rate-limit line, the optional
certificate, env file, installation tree and service user. SSH, firewall
rules and installed packages are left alone.
"""

from __future__ import annotations

import logging
import shutil

from pydantic import BaseModel, ConfigDict

from bluegreen.core.errors import CommandError
from bluegreen.core.runner import CommandRunner
from bluegreen.models.layout import HostLayout
from bluegreen.services.nginx import ProxyConfigurator
from bluegreen.services.packages import DependencyInstaller
from bluegreen.services.systemd import ServiceController
from bluegreen.services.tls import TlsProvisioner

logger = logging.getLogger(__name__)


class DestroySummary(BaseModel):
    """What one destroy run removed (or left in place)."""

    model_config = ConfigDict(frozen=True)

    app: str
    domain: str | None = None
    stopped_units: list[str] = []
    unit_template_removed: bool = False
    site_removed: bool = False
    rate_limit_removed: bool = False
    nginx_reloaded: bool = False
    certificate_deleted: bool = False
    env_removed: bool = False
    install_dir_removed: bool = False
    user_removed: bool = False
    warnings: list[str] = []


class Destroyer:
    """Tears down one application's deployment.

    Parameters
    ----------
    layout:
        Host paths for the application.
    runner:
        External command collaborator.
    ports:
        The two fixed ports, stopped even when systemd does not list them.
    """

    def __init__(
        self,
        layout: HostLayout,
        runner: CommandRunner,
        ports: tuple[int, int],
        *,
        services: ServiceController | None = None,
        proxy: ProxyConfigurator | None = None,
        tls: TlsProvisioner | None = None,
        packages: DependencyInstaller | None = None,
    ) -> None:
        self._layout = layout
        self._runner = runner
        self._ports = ports
        self._services = services or ServiceController(layout, runner)
        self._proxy = proxy or ProxyConfigurator(layout, runner)
        self._tls = tls or TlsProvisioner(layout, runner)
        self._packages = packages or DependencyInstaller(runner)

    def destroy(
        self,
        *,
        domain: str = "",
        clean_certs: bool = False,
        keep_backups: int = 1,
    ) -> DestroySummary:
        """Run every teardown step; individual failures become warnings.

        *domain* defaults to the ``server_name`` found in the installed site.
        """
        app = self._layout.app_name
        warnings: list[str] = []
        detected = domain or self._proxy.current_server_name() or None
        if detected and not domain:
            logger.info("Detected domain %s from %s", detected, self._layout.nginx_site)

        # 1. Instances and unit template
        stopped = self._stop_instances()
        template = self._layout.unit_template
        template_removed = False
        if template.exists():
            template.unlink()
            template_removed = True
        reload_result = self._runner.run(["systemctl", "daemon-reload"], check=False)
        if not reload_result.ok:
            warnings.append("systemctl daemon-reload failed")
        self._runner.run(["systemctl", "reset-failed"], check=False)

        # 2. Proxy site and rate-limit zone
        site_removed = bool(self._proxy.remove_site())
        rate_removed = self._proxy.remove_rate_limit_zone(keep_backups=keep_backups)
        nginx_reloaded = False
        if self._runner.which("nginx") is not None:
            if self._proxy.test():
                try:
                    self._proxy.reload()
                    nginx_reloaded = True
                except CommandError as exc:
                    warnings.append(f"nginx reload failed: {exc}")
            else:
                warnings.append("nginx -t failed after removal; nginx not reloaded")

        # 3. Certificate (opt-in)
        cert_deleted = False
        if clean_certs and detected:
            cert_deleted = self._tls.delete(detected)
            if not cert_deleted:
                warnings.append(f"certificate for {detected} not deleted")
        elif clean_certs:
            warnings.append("CLEAN_CERTS set but no domain known; certificate kept")

        # 4. Environment file and installation tree
        env_removed = False
        env_file = self._layout.env_file
        if env_file.exists():
            env_file.unlink()
            env_removed = True
        env_dir = self._layout.env_dir
        if env_dir.is_dir() and not any(env_dir.iterdir()):
            env_dir.rmdir()

        install_dir = self._layout.install_dir
        install_removed = False
        if install_dir.exists():
            shutil.rmtree(install_dir)
            install_removed = True

        # 5. Service user, only when it is ours
        user_removed = self._remove_user_if_owned()

        summary = DestroySummary(
            app=app,
            domain=detected,
            stopped_units=stopped,
            unit_template_removed=template_removed,
            site_removed=site_removed,
            rate_limit_removed=rate_removed,
            nginx_reloaded=nginx_reloaded,
            certificate_deleted=cert_deleted,
            env_removed=env_removed,
            install_dir_removed=install_removed,
            user_removed=user_removed,
            warnings=warnings,
        )
        for warning in warnings:
            logger.warning(warning)
        logger.info(">>> Destroyed %s", app)
        return summary

    def _stop_instances(self) -> list[str]:
        units = list(self._services.list_instances())
        for port in self._ports:
            name = self._layout.unit_name(port)
            if name not in units:
                units.append(name)
        prefix = f"{self._layout.app_name}@"
        for unit in units:
            port_text = unit.removeprefix(prefix).removesuffix(".service")
            if port_text.isdigit():
                self._services.stop(int(port_text))
            else:
                self._runner.run(["systemctl", "stop", unit], check=False)
                self._runner.run(["systemctl", "disable", unit], check=False)
        return units

    def _remove_user_if_owned(self) -> bool:
        user = self._layout.app_name
        home = self._packages.user_home(user)
        if home is None:
            return False
        if home != str(self._layout.install_dir):
            logger.info("User %s has home %s; not ours, keeping it", user, home)
            return False
        if self._layout.install_dir.exists():
            return False
        result = self._runner.run(["userdel", user], check=False)
        if not result.ok:
            logger.warning("userdel %s failed: %s", user, result.stderr.strip())
        return result.ok
