"""TLS Provisioner — ACME HTTP-01 via certbot's nginx authenticator.

Issuance uses ``certbot certonly`` so certbot never rewrites the site
file; the configurator re-renders the site with the HTTPS server block
(HSTS, TLS 1.2/1.3 only) once the certificate exists.
"""

from __future__ import annotations

import logging

from bluegreen.core.errors import CommandError
from bluegreen.core.runner import CommandRunner
from bluegreen.models.layout import HostLayout

logger = logging.getLogger(__name__)


class TlsProvisioner:
    """Obtains and deletes Let's Encrypt certificates for one domain."""

    def __init__(self, layout: HostLayout, runner: CommandRunner) -> None:
        self._layout = layout
        self._runner = runner

    def has_certificate(self, domain: str) -> bool:
        cert_dir = self._layout.certificate_dir(domain)
        return (cert_dir / "fullchain.pem").exists() and (cert_dir / "privkey.pem").exists()

    def obtain(self, domain: str, email: str) -> bool:
        """Obtain a certificate unless one exists.

        Returns True when a new certificate was issued. Raises
        ``CommandError`` when certbot fails.
        """
        if self.has_certificate(domain):
            logger.info("Certificate for %s already present; certbot renews it via its timer", domain)
            return False
        if self._runner.which("certbot") is None:
            raise CommandError(["certbot"], 127, "certbot not installed")
        self._runner.run(
            [
                "certbot", "certonly", "--nginx",
                "-d", domain,
                "--non-interactive", "--agree-tos",
                "-m", email,
                "--keep-until-expiring",
            ],
            timeout=300,
        )
        logger.info("Issued certificate for %s", domain)
        return True

    def delete(self, domain: str) -> bool:
        """``certbot delete`` for *domain*; False when certbot is missing or fails."""
        if self._runner.which("certbot") is None:
            logger.warning("certbot not found; skipping certificate deletion")
            return False
        result = self._runner.run(
            ["certbot", "delete", "--cert-name", domain, "-n"], check=False
        )
        if not result.ok:
            logger.warning("certbot delete %s failed: %s", domain, result.stderr.strip())
        return result.ok
