"""Verificacao pos-abertura do estado das portas."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import typer

from lightsail_firewall.client import get_instance_port_states
from lightsail_firewall.firewall import OpenPortsReport, PortOpenRequest
from lightsail_firewall.utils import ExecutionContext, logger


def _covers(state: Dict[str, Any], request: PortOpenRequest) -> bool:
    if str(state.get("state", "")).lower() != "open":
        return False
    protocol = str(state.get("protocol", "")).lower()
    if protocol not in (request.protocol, "all"):
        return False
    return state.get("fromPort", -1) <= request.from_port and request.to_port <= state.get("toPort", -1)


def verify_request(client, request: PortOpenRequest, ctx: ExecutionContext, states: List[Dict[str, Any]] | None = None) -> Tuple[bool, str]:
    """Confere se alguma regra aberta cobre a faixa pedida."""
    if ctx.dry_run:
        return True, "dry-run mode"

    if states is None:
        states = get_instance_port_states(client, request.instance_name, ctx)
    if any(_covers(state, request) for state in states):
        return True, f"{request.from_port}-{request.to_port}/{request.protocol} aberta"
    return False, f"{request.from_port}-{request.to_port}/{request.protocol} nao aparece como aberta"


def verify_report(client, report: OpenPortsReport, ctx: ExecutionContext) -> bool:
    """Verifica todas as requisicoes abertas; consulta cada instancia uma vez."""
    typer.echo("\nVerificando estado das portas...")
    states_cache: Dict[str, List[Dict[str, Any]]] = {}
    all_ok = True

    for outcome in report.opened:
        request = outcome.request
        if request.instance_name not in states_cache:
            states_cache[request.instance_name] = get_instance_port_states(client, request.instance_name, ctx)
        ok, msg = verify_request(client, request, ctx, states=states_cache[request.instance_name])
        if ok:
            typer.secho(f"✓ {request.instance_name}: {msg}", fg=typer.colors.GREEN)
        else:
            all_ok = False
            logger.warning(f"Verificacao falhou em {request.instance_name}: {msg}")
            typer.secho(f"✗ {request.instance_name}: {msg}", fg=typer.colors.RED)

    return all_ok
