"""Host filesystem layout — every persisted path derived from the app name."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict

from bluegreen.config import DeploySettings


class HostLayout(BaseModel):
    """Fixed paths for one application on one host.

    Layout::

        {install_root}/{app}/releases/release-<id>/{app.jar, sbom.json}
        {install_root}/{app}/current -> releases/release-<id>
        {install_root}/{app}/checksums/<id>.sha256
        {install_root}/{app}/active_port
        {install_root}/{app}/audit/manifest-<timestamp>.json
        {etc_root}/{app}/env
        {systemd_dir}/{app}@.service
        {nginx_root}/sites-available/{app}  (+ sites-enabled symlink)
    """

    model_config = ConfigDict(frozen=True)

    app_name: str
    install_root: Path = Path("/opt")
    etc_root: Path = Path("/etc")
    nginx_root: Path = Path("/etc/nginx")
    systemd_dir: Path = Path("/etc/systemd/system")
    letsencrypt_root: Path = Path("/etc/letsencrypt")

    @classmethod
    def from_settings(cls, settings: DeploySettings) -> HostLayout:
        return cls(
            app_name=settings.app_name,
            install_root=settings.install_root,
            etc_root=settings.etc_root,
            nginx_root=settings.nginx_root,
            systemd_dir=settings.systemd_dir,
            letsencrypt_root=settings.letsencrypt_root,
        )

    # Installation tree
    @property
    def install_dir(self) -> Path:
        return self.install_root / self.app_name

    @property
    def releases_dir(self) -> Path:
        return self.install_dir / "releases"

    @property
    def current_link(self) -> Path:
        return self.install_dir / "current"

    @property
    def checksums_dir(self) -> Path:
        return self.install_dir / "checksums"

    @property
    def audit_dir(self) -> Path:
        return self.install_dir / "audit"

    @property
    def active_port_file(self) -> Path:
        return self.install_dir / "active_port"

    @property
    def canary_port_file(self) -> Path:
        return self.install_dir / "canary_port"

    # Service manager
    @property
    def env_dir(self) -> Path:
        return self.etc_root / self.app_name

    @property
    def env_file(self) -> Path:
        return self.env_dir / "env"

    @property
    def unit_template(self) -> Path:
        return self.systemd_dir / f"{self.app_name}@.service"

    # Reverse proxy
    @property
    def nginx_site(self) -> Path:
        return self.nginx_root / "sites-available" / self.app_name

    @property
    def nginx_link(self) -> Path:
        return self.nginx_root / "sites-enabled" / self.app_name

    @property
    def nginx_default_link(self) -> Path:
        return self.nginx_root / "sites-enabled" / "default"

    @property
    def nginx_conf(self) -> Path:
        return self.nginx_root / "nginx.conf"

    def certificate_dir(self, domain: str) -> Path:
        """Directory certbot writes ``fullchain.pem``/``privkey.pem`` into."""
        return self.letsencrypt_root / "live" / domain

    def unit_name(self, port: int) -> str:
        """Instance name for one port, e.g. ``hello-boot@8081.service``."""
        return f"{self.app_name}@{port}.service"
