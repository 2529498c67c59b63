"""Traffic steps: proxy site, cutover, canary promotion and TLS."""

from __future__ import annotations

from typing import Any, ClassVar

from bluegreen.core.cutover import CutoverMode
from bluegreen.services.nginx import compute_upstreams, render_site
from bluegreen.steps.base import BaseStep
from bluegreen.steps.context import RunContext


def _render_for(context: RunContext) -> str:
    settings = context.settings
    tls = context.tools.proxy.tls_paths(settings.domain) if settings.domain else None
    context.site_has_tls = tls is not None
    return render_site(
        context.layout.app_name,
        context.upstreams,
        server_name=settings.domain or "_",
        rate_burst=settings.rate_burst,
        tls=tls,
    )


class ProxyStep(BaseStep):
    """Point the upstream at the healthy target (weighted during a canary)."""

    @property
    def step_id(self) -> str:
        return "proxy"

    @property
    def display_name(self) -> str:
        return "Reverse Proxy Configurator"

    def execute(self, context: RunContext) -> dict[str, Any]:
        proxy = context.tools.proxy
        zone_added = proxy.ensure_rate_limit_zone(context.settings.rate_limit)
        context.upstreams = compute_upstreams(
            context.require_target_port(),
            context.previous_port,
            context.canary_percent,
        )
        proxy.apply_site(_render_for(context))
        split = ", ".join(
            f"{u.port}" + (f"={u.weight}" if u.weight is not None else "")
            for u in context.upstreams
        )
        return {
            "detail": f"upstream {split}" + (" (https)" if context.site_has_tls else ""),
            "upstreams": [u.model_dump() for u in context.upstreams],
            "rate_limit_zone_added": zone_added,
            "tls": context.site_has_tls,
        }


class CutoverStep(BaseStep):
    @property
    def step_id(self) -> str:
        return "cutover"

    @property
    def display_name(self) -> str:
        return "Cutover Controller"

    def execute(self, context: RunContext) -> dict[str, Any]:
        cutover = context.tools.cutover
        if context.mode == CutoverMode.PROMOTE:
            summary = cutover.promote()
        elif context.mode == CutoverMode.CANARY:
            summary = cutover.open_canary(
                context.require_target_port(),
                context.previous_port,
                context.canary_percent,
            )
        else:
            summary = cutover.complete(context.require_target_port(), context.previous_port)
        detail = f"{summary['mode']}: active port {summary['active_port']}"
        if summary.get("stopped"):
            detail += f", stopped {summary['stopped']}"
        return {"detail": detail, **summary}


class CanaryWindowStep(BaseStep):
    """Promotion entry point: requires an open canary window."""

    @property
    def step_id(self) -> str:
        return "canary_window"

    @property
    def display_name(self) -> str:
        return "Canary Window Check"

    def execute(self, context: RunContext) -> dict[str, Any]:
        canary, active = context.tools.cutover.promotion_ports()
        context.target_port = canary
        context.previous_port = active
        context.release = context.tools.releases.current_release()
        return {
            "detail": f"promoting {canary} (active {active})",
            "canary_port": canary,
            "active_port": active,
        }


class TlsStep(BaseStep):
    """Obtain a certificate and re-render the site with HTTPS."""

    best_effort: ClassVar[bool] = True

    @property
    def step_id(self) -> str:
        return "tls"

    @property
    def display_name(self) -> str:
        return "TLS Provisioner"

    def skip_reason(self, context: RunContext) -> str | None:
        if not context.settings.tls_requested:
            return "DOMAIN/EMAIL not set"
        return None

    def execute(self, context: RunContext) -> dict[str, Any]:
        settings = context.settings
        issued = context.tools.tls.obtain(settings.domain, settings.email)
        rerendered = False
        if not context.site_has_tls and context.upstreams:
            content = _render_for(context)
            if context.site_has_tls:
                context.tools.proxy.apply_site(content)
                rerendered = True
        detail = "certificate issued" if issued else "certificate present"
        if rerendered:
            detail += ", https enabled"
        return {"detail": detail, "issued": issued, "https": context.site_has_tls}
