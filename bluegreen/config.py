"""Deploy configuration — env-driven, read once at process start.

Centralized settings using pydantic-settings. Variables carry no prefix
(``APP_NAME``, ``DOMAIN``, ``KEEP_RELEASES``, ...), so invocations such as
``ROLLBACK=yes bluegreen deploy`` work without any CLI options.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_TRUTHY = {"1", "true", "yes", "y", "on"}
_FALSY = {"0", "false", "no", "n", "off", ""}


class DeploySettings(BaseSettings):
    """Deploy configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export APP_NAME=hello-boot
        export DOMAIN=app.example.com EMAIL=ops@example.com
        export KEEP_RELEASES=3 CANARY_PERCENT=10

    Or via .env file::

        APP_NAME=hello-boot
        RATE_LIMIT=20r/s
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application identity
    app_name: str = "hello-boot"
    group_id: str = "com.example"
    package: str = "com.example.demo"
    boot_version: str = "3.3.4"
    java_release: str = "17"
    workdir: Path = Path(".")

    # Blue/green ports
    blue_port: int = 8081
    green_port: int = 8082

    # Public endpoint + TLS
    domain: str = ""
    email: str = ""

    # Release retention
    keep_releases: int = 5

    # Proxy policy
    rate_limit: str = "10r/s"
    rate_burst: int = 20

    # Workflow switches
    rollback: bool = False
    canary_percent: int = 0
    promote: bool = False
    install_deps: bool = True

    # Runtime
    java_opts: str = "-XX:+UseZGC -Xms256m -Xmx512m"
    spring_profile: str = "prod"
    health_path: str = "/actuator/health"
    health_attempts: int = 60
    health_interval: float = 1.0

    # Destroy
    clean_certs: bool = False
    keep_backups: int = 1

    # Host
    ssh_port: int = 22
    require_root: bool = True
    log_level: str = "INFO"

    # Filesystem roots
    install_root: Path = Path("/opt")
    etc_root: Path = Path("/etc")
    nginx_root: Path = Path("/etc/nginx")
    systemd_dir: Path = Path("/etc/systemd/system")
    letsencrypt_root: Path = Path("/etc/letsencrypt")

    @field_validator(
        "rollback", "promote", "install_deps", "clean_certs", "require_root",
        mode="before",
    )
    @classmethod
    def _parse_yes_no(cls, value: object) -> object:
        """Accept the ``yes``/``no`` spelling common in shell environments."""
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUTHY:
                return True
            if lowered in _FALSY:
                return False
        return value

    @property
    def ports(self) -> tuple[int, int]:
        """The two fixed instance ports, blue first."""
        return (self.blue_port, self.green_port)

    @property
    def tls_requested(self) -> bool:
        return bool(self.domain and self.email)
