"""Abertura de portas publicas nas instancias Lightsail."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

import typer
from botocore.exceptions import BotoCoreError, ClientError

from lightsail_firewall.client import get_instance_port_states, list_instance_names, open_instance_public_ports
from lightsail_firewall.errors import LightsailFirewallError, OpenPortFailure, OperationCancelled
from lightsail_firewall.ports import ALL_PORTS, expand_port_tokens
from lightsail_firewall.utils import ExecutionContext, logger

ALL_INSTANCES = "all"

STATUS_OPENED = "opened"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"
STATUS_DRY_RUN = "dry-run"


@dataclass(frozen=True)
class PortOpenRequest:
    instance_name: str
    from_port: int
    to_port: int
    protocol: str
    port_token: str

    def to_port_info(self) -> Dict[str, Any]:
        return {"fromPort": self.from_port, "toPort": self.to_port, "protocol": self.protocol}


@dataclass
class RequestOutcome:
    request: PortOpenRequest
    status: str
    error: Optional[str] = None
    operation_id: Optional[str] = None


@dataclass
class OpenPortsReport:
    """Resultado por requisicao, inclusive o que ficou para tras apos uma falha."""

    instances: List[str]
    outcomes: List[RequestOutcome] = field(default_factory=list)
    not_attempted: List[str] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add(self, outcome: RequestOutcome) -> None:
        with self._lock:
            self.outcomes.append(outcome)

    def _with_status(self, status: str) -> List[RequestOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status == status]

    @property
    def opened(self) -> List[RequestOutcome]:
        return self._with_status(STATUS_OPENED)

    @property
    def failed(self) -> List[RequestOutcome]:
        return self._with_status(STATUS_FAILED)

    @property
    def skipped(self) -> List[RequestOutcome]:
        return self._with_status(STATUS_SKIPPED)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.not_attempted


def resolve_instances(client, instance_names: Sequence[str], ctx: ExecutionContext) -> List[str]:
    """Resolve o seletor de instancias.

    Somente a lista exata ``["all"]`` consulta o inventario da regiao.
    """
    names = list(instance_names)
    if names == [ALL_INSTANCES]:
        return list_instance_names(client, ctx)
    return names


def plan_requests(instance: str, port_tokens: Iterable[str], ctx: ExecutionContext) -> List[PortOpenRequest]:
    expanded = expand_port_tokens(port_tokens, instance, validate=not ctx.skip_validation)
    return [
        PortOpenRequest(
            instance_name=instance,
            from_port=port_range.from_port,
            to_port=port_range.to_port,
            protocol=port_range.protocol,
            port_token=token,
        )
        for token, port_range in expanded
    ]


def _describe(request: PortOpenRequest) -> str:
    if request.port_token == ALL_PORTS:
        return f"{request.instance_name}: todas as portas/protocolos"
    return f"{request.instance_name}: {request.from_port}-{request.to_port}/{request.protocol}"


def _open_instance(
    client,
    instance: str,
    port_tokens: Sequence[str],
    ctx: ExecutionContext,
    report: OpenPortsReport,
) -> None:
    requests = plan_requests(instance, port_tokens, ctx)

    for idx, request in enumerate(requests):
        if ctx.dry_run:
            typer.echo(f"[dry-run] abrir {_describe(request)}")
            report.add(RequestOutcome(request, STATUS_DRY_RUN))
            continue

        try:
            operation = open_instance_public_ports(client, request, ctx)
        except OperationCancelled:
            for pending in requests[idx:]:
                report.add(RequestOutcome(pending, STATUS_SKIPPED))
            raise
        except (ClientError, BotoCoreError) as exc:
            logger.error(f"Falha ao abrir {_describe(request)}: {exc}")
            report.add(RequestOutcome(request, STATUS_FAILED, error=str(exc)))
            for pending in requests[idx + 1:]:
                report.add(RequestOutcome(pending, STATUS_SKIPPED))
            raise OpenPortFailure(instance, request.port_token, request, exc) from exc

        report.add(RequestOutcome(request, STATUS_OPENED, operation_id=operation.get("id")))
        typer.secho(f"✓ {_describe(request)}", fg=typer.colors.GREEN)


def _open_sequential(client, instances, port_tokens, ctx, report) -> None:
    for idx, instance in enumerate(instances):
        try:
            _open_instance(client, instance, port_tokens, ctx, report)
        except LightsailFirewallError:
            report.not_attempted.extend(instances[idx + 1:])
            raise


def _open_parallel(client, instances, port_tokens, ctx, report) -> None:
    """Uma instancia por worker, cada uma fail-fast.

    A primeira falha marca ``ctx.cancelled``: instancias em andamento param
    antes da proxima chamada e as que nao comecaram sao canceladas.
    """
    first_error: Optional[BaseException] = None
    with ThreadPoolExecutor(max_workers=ctx.workers) as pool:
        futures = {
            pool.submit(_open_instance, client, instance, port_tokens, ctx, report): instance
            for instance in instances
        }

        def cancel_pending() -> None:
            ctx.cancelled.set()
            for pending, name in futures.items():
                if pending.cancel():
                    report.not_attempted.append(name)

        try:
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                exc = future.exception()
                if exc is None or isinstance(exc, OperationCancelled):
                    continue
                if first_error is None:
                    first_error = exc
                    cancel_pending()
        except BaseException:
            # Ctrl-C: o shutdown do pool espera os workers, que nao podem
            # seguir consumindo a fila
            cancel_pending()
            raise

    if first_error is not None:
        raise first_error


def open_ports(
    client,
    instance_names: Sequence[str],
    port_tokens: Sequence[str],
    ctx: ExecutionContext,
) -> OpenPortsReport:
    """Abre cada porta pedida em cada instancia pedida.

    Ordem deterministica: instancias, depois tokens, depois faixas expandidas.
    A primeira falha interrompe tudo; o erro levantado carrega o relatorio
    parcial em ``error.report``.
    """
    port_tokens = list(port_tokens)
    instances = resolve_instances(client, instance_names, ctx)
    report = OpenPortsReport(instances=instances)

    if not instances:
        ctx.warn("Nenhuma instancia encontrada; nada a fazer.")
        return report

    logger.info(f"Abrindo portas {port_tokens} em {len(instances)} instancia(s) (workers={ctx.workers})")
    try:
        if ctx.workers > 1 and len(instances) > 1:
            _open_parallel(client, instances, port_tokens, ctx, report)
        else:
            _open_sequential(client, instances, port_tokens, ctx, report)
    except (LightsailFirewallError, KeyboardInterrupt) as exc:
        exc.report = report
        raise
    return report


def query_port_states(client, instance_names: Sequence[str], ctx: ExecutionContext) -> Dict[str, List[Dict[str, Any]]]:
    instances = resolve_instances(client, instance_names, ctx)
    return {instance: get_instance_port_states(client, instance, ctx) for instance in instances}
