"""Erros do lightsail-firewall."""

from __future__ import annotations


class LightsailFirewallError(Exception):
    """Base de todos os erros reportados pela CLI."""

    # Preenchido pelo orquestrador com os resultados ate a falha
    report = None


class InstanceListFailure(LightsailFirewallError):
    """Falha ao listar as instancias da regiao."""

    def __init__(self, region: str | None, cause: Exception):
        self.region = region
        self.cause = cause
        super().__init__(f"failed to get instances in region {region or '(default)'}: {cause}")


class MalformedPortSpec(LightsailFirewallError):
    """Porta ou faixa que nao pode ser interpretada."""

    def __init__(self, spec: str, token: str, instance: str | None = None, reason: str = ""):
        self.spec = spec
        self.token = token
        self.instance = instance
        detail = reason or f"{token!r} is not an integer"
        target = f" for instance {instance}" if instance else ""
        super().__init__(f"invalid port {spec}{target}: {detail}")


class InvalidPortRange(MalformedPortSpec):
    """Faixa fora de 0-65535 ou com inicio maior que o fim."""


class OpenPortFailure(LightsailFirewallError):
    """O provedor recusou ou falhou ao abrir uma porta."""

    def __init__(self, instance: str, port_token: str, request, cause: Exception):
        self.instance = instance
        self.port_token = port_token
        self.request = request
        self.cause = cause
        if port_token == "all":
            msg = f"failed to open all ports for instance {instance}: {cause}"
        else:
            msg = f"failed to open port {port_token} for instance {instance}: {cause}"
        super().__init__(msg)


class PortStateQueryFailure(LightsailFirewallError):
    """Falha ao consultar o estado das portas de uma instancia."""

    def __init__(self, instance: str, cause: Exception):
        self.instance = instance
        self.cause = cause
        super().__init__(f"failed to get port states for instance {instance}: {cause}")


class OperationCancelled(LightsailFirewallError):
    """Invocacao cancelada antes de emitir a proxima chamada."""


class EmptySelection(LightsailFirewallError):
    """Opcao informada explicitamente, mas sem nenhum valor."""

    def __init__(self, option: str):
        self.option = option
        super().__init__(f"{option} was given but is empty; use 'all' to select everything")
