"""CLI principal do lightsail-firewall."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer
import yaml
from botocore.exceptions import BotoCoreError
from rich import box
from rich.console import Console
from rich.table import Table

from lightsail_firewall import __version__
from lightsail_firewall.client import get_lightsail_client
from lightsail_firewall.config import ConfigManager, FirewallConfig, build_config
from lightsail_firewall.errors import EmptySelection, LightsailFirewallError
from lightsail_firewall.firewall import (
    STATUS_DRY_RUN,
    STATUS_FAILED,
    STATUS_OPENED,
    OpenPortsReport,
    open_ports,
    query_port_states,
)
from lightsail_firewall.healthchecks import verify_report
from lightsail_firewall.ports import ALL_PORTS
from lightsail_firewall.utils import ExecutionContext, active_log_file, logger, set_verbose

app = typer.Typer(add_completion=False, help="Abre portas publicas em instancias AWS Lightsail")
console = Console()

SUCCESS_MESSAGE = "Ports opened successfully."
FAILURE_PREFIX = "Failed to open ports"

STATUS_STYLES = {
    STATUS_OPENED: "green",
    STATUS_FAILED: "bold red",
    STATUS_DRY_RUN: "yellow",
}

REGION_OPTION = typer.Option(None, "--region", "-r", help="Regiao AWS (ex.: us-east-1)")
INSTANCES_OPTION = typer.Option(
    None,
    "--instanceNames",
    "--instance-names",
    "-i",
    help="Instancias (ex.: name1,name2); 'all' para todas da regiao  [default: all]",
)


def _version_callback(value: bool) -> None:
    """Imprime a versao e encerra imediatamente."""

    if value:
        typer.echo(f"lightsail-firewall {__version__}")
        raise typer.Exit()


def _exec_context(ctx: typer.Context) -> ExecutionContext:
    return ctx.obj or ExecutionContext()


def _config_manager(ctx: typer.Context) -> ConfigManager:
    return ctx.meta.get("config_manager") or ConfigManager()


def _build_config(ctx: typer.Context, region, instance_names, ports) -> FirewallConfig:
    """Flag vazia (ex.: `-i "$NAMES"` com variavel nao definida) e erro de uso."""
    exec_ctx = _exec_context(ctx)
    try:
        return build_config(region, instance_names, ports, exec_ctx.profile, _config_manager(ctx))
    except EmptySelection as exc:
        raise typer.BadParameter(str(exc), param_hint=exc.option)


def _render_report(report: OpenPortsReport) -> None:
    if not report.outcomes and not report.not_attempted:
        return

    table = Table(title="Requisicoes", header_style="bold white", box=box.ROUNDED)
    table.add_column("Instancia", style="cyan", no_wrap=True)
    table.add_column("Token", no_wrap=True)
    table.add_column("Portas", justify="right", no_wrap=True)
    table.add_column("Protocolo", no_wrap=True)
    table.add_column("Status", no_wrap=True)
    table.add_column("Detalhe", style="dim")

    for outcome in report.outcomes:
        request = outcome.request
        style = STATUS_STYLES.get(outcome.status, "dim")
        table.add_row(
            request.instance_name,
            request.port_token,
            f"{request.from_port}-{request.to_port}",
            request.protocol,
            f"[{style}]{outcome.status}[/{style}]",
            outcome.error or outcome.operation_id or "",
        )
    for instance in report.not_attempted:
        table.add_row(instance, "-", "-", "-", "[dim]not attempted[/dim]", "")

    console.print(table)
    typer.echo(
        f"Abertas: {len(report.opened)}  Falhas: {len(report.failed)}  "
        f"Puladas: {len(report.skipped)}  Instancias nao tentadas: {len(report.not_attempted)}"
    )


def _fail(message: str, exc: Exception) -> None:
    logger.error(f"{message}: {exc}", exc_info=True)
    typer.secho(f"{message}: {exc}", fg=typer.colors.RED)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "-n", "--dry-run", help="Mostra as requisicoes sem executa-las."),
    config: Optional[Path] = typer.Option(None, "-c", "--config", help="Arquivo YAML/JSON de configuracao"),
    profile: Optional[str] = typer.Option(None, "--profile", help="Perfil AWS de ~/.aws/config"),
    timeout: Optional[int] = typer.Option(None, "--timeout", min=1, help="Timeout por chamada em segundos [default: 60]"),
    skip_validation: bool = typer.Option(
        False, "--skip-validation", help="Envia faixas fora de 0-65535 sem validar (o provedor decide)"
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Mostra o log detalhado no console"),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Mostra a versao e sai",
    ),
) -> None:
    """Abre portas publicas em instancias AWS Lightsail."""
    set_verbose(verbose)

    if config is not None and not config.exists():
        raise typer.BadParameter(f"Arquivo de configuracao nao encontrado: {config}", param_hint="--config")
    try:
        manager = ConfigManager(config)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        logger.error(f"Falha ao carregar {config}: {exc}")
        raise typer.BadParameter(f"Nao foi possivel carregar {config}: {exc}", param_hint="--config")
    ctx.meta["config_manager"] = manager

    ctx.obj = ExecutionContext(
        profile=profile,
        dry_run=dry_run,
        skip_validation=skip_validation,
        timeout=timeout or int(manager.get("aws.timeout", 60)),
        max_attempts=int(manager.get("aws.max_attempts", 3)),
        workers=int(manager.get("firewall.workers", 1)),
    )

    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())


def open_command(
    ctx: typer.Context,
    region: Optional[str] = REGION_OPTION,
    instance_names: Optional[List[str]] = INSTANCES_OPTION,
    ports: Optional[List[str]] = typer.Option(
        None,
        "--ports",
        "-p",
        help="Portas (ex.: 80,443 ou 8000-8100); 'all' para todas as portas e protocolos  [default: all]",
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", min=1, help="Instancias processadas em paralelo [default: 1]"
    ),
    verify: bool = typer.Option(False, "--verify", help="Confere o estado das portas apos abrir"),
) -> None:
    """Abre portas ou faixas de portas nas instancias Lightsail."""
    exec_ctx = _exec_context(ctx)
    cfg = _build_config(ctx, region, instance_names, ports)
    exec_ctx.region = cfg.region
    exec_ctx.profile = cfg.profile
    if workers:
        exec_ctx.workers = workers

    logger.info(
        f"open: regiao={cfg.region} instancias={cfg.instance_names} portas={cfg.ports} "
        f"dry_run={exec_ctx.dry_run}"
    )
    if ALL_PORTS in cfg.ports and len(cfg.ports) > 1:
        exec_ctx.warn("'all' cobre todas as portas; demais tokens serao ignorados.")

    try:
        client = get_lightsail_client(exec_ctx)
        report = open_ports(client, cfg.instance_names, cfg.ports, exec_ctx)
    except KeyboardInterrupt as exc:
        exec_ctx.cancelled.set()
        logger.warning("Abertura de portas interrompida pelo usuario")
        typer.secho("\n⚠ Interrompido", fg=typer.colors.YELLOW)
        if getattr(exc, "report", None) is not None:
            _render_report(exc.report)
        raise typer.Exit(code=130)
    except LightsailFirewallError as exc:
        _fail(FAILURE_PREFIX, exc)
        if exc.report is not None:
            _render_report(exc.report)
        raise typer.Exit(code=1)
    except BotoCoreError as exc:
        # Regiao ou credenciais ausentes ao criar o cliente
        _fail(FAILURE_PREFIX, exc)
        raise typer.Exit(code=1)

    _render_report(report)
    if exec_ctx.dry_run:
        typer.secho(f"[dry-run] {len(report.outcomes)} requisicao(oes) planejada(s).", fg=typer.colors.YELLOW)
        return

    typer.secho(SUCCESS_MESSAGE, fg=typer.colors.GREEN)

    if verify:
        try:
            verified = verify_report(client, report, exec_ctx)
        except LightsailFirewallError as exc:
            _fail("Failed to verify ports", exc)
            raise typer.Exit(code=1)
        if not verified:
            typer.secho("Algumas portas nao aparecem como abertas.", fg=typer.colors.RED)
            raise typer.Exit(code=1)


app.command(name="open")(open_command)
# Alias curto mantido por compatibilidade
app.command(name="fw", hidden=True)(open_command)


@app.command()
def status(
    ctx: typer.Context,
    region: Optional[str] = REGION_OPTION,
    instance_names: Optional[List[str]] = INSTANCES_OPTION,
) -> None:
    """Lista o estado das portas publicas de cada instancia."""
    exec_ctx = _exec_context(ctx)
    cfg = _build_config(ctx, region, instance_names, None)
    exec_ctx.region = cfg.region
    exec_ctx.profile = cfg.profile

    try:
        client = get_lightsail_client(exec_ctx)
        states = query_port_states(client, cfg.instance_names, exec_ctx)
    except (LightsailFirewallError, BotoCoreError) as exc:
        _fail("Failed to get port states", exc)
        raise typer.Exit(code=1)

    table = Table(title="Portas publicas", header_style="bold white", box=box.ROUNDED)
    table.add_column("Instancia", style="cyan", no_wrap=True)
    table.add_column("Portas", justify="right", no_wrap=True)
    table.add_column("Protocolo", no_wrap=True)
    table.add_column("Estado", no_wrap=True)
    table.add_column("CIDRs", style="dim")
    for instance, port_states in states.items():
        if not port_states:
            table.add_row(instance, "-", "-", "[dim]nenhuma regra[/dim]", "")
            continue
        for state in port_states:
            label = str(state.get("state", ""))
            style = "green" if label.lower() == "open" else "yellow"
            table.add_row(
                instance,
                f"{state.get('fromPort')}-{state.get('toPort')}",
                str(state.get("protocol", "")),
                f"[{style}]{label}[/{style}]",
                ", ".join(state.get("cidrs", [])),
            )
    console.print(table)


@app.command(name="init-config")
def init_config(
    path: Path = typer.Argument(Path("lightsail-firewall.yaml"), help="Arquivo a criar (.yaml, .yml ou .json)"),
    force: bool = typer.Option(False, "--force", "-f", help="Sobrescreve arquivo existente"),
) -> None:
    """Cria um template de configuracao."""
    if path.exists() and not force:
        typer.secho(f"{path} ja existe (use --force para sobrescrever).", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    ConfigManager.create_template(path)


@app.command()
def logs() -> None:
    """Mostra o caminho do arquivo de log ativo."""
    typer.echo(str(active_log_file()))


if __name__ == "__main__":
    app()
