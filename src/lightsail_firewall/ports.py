"""Interpretacao de especificacoes de portas.

Formatos aceitos por token:

* ``all``       todas as portas (0-65535) e todos os protocolos
* ``80``        porta unica
* ``80,443``    lista de portas unicas
* ``8000-8100`` faixa inclusiva

O sentinela ``all`` e tratado por :func:`expand_port_tokens`; o parser
numerico nunca o recebe.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Tuple

from lightsail_firewall.errors import InvalidPortRange, MalformedPortSpec

ALL_PORTS = "all"
PROTOCOL_TCP = "tcp"
PROTOCOL_ALL = "all"
MIN_PORT = 0
MAX_PORT = 65535


@dataclass(frozen=True)
class PortRange:
    from_port: int
    to_port: int
    protocol: str = PROTOCOL_TCP

    @property
    def is_full_range(self) -> bool:
        return (self.from_port, self.to_port, self.protocol) == (MIN_PORT, MAX_PORT, PROTOCOL_ALL)


def full_range() -> PortRange:
    return PortRange(MIN_PORT, MAX_PORT, PROTOCOL_ALL)


def _to_int(token: str, spec: str, instance: str | None) -> int:
    text = token.strip()
    # int() aceitaria "+80" e "٨٠"; so digitos ASCII sao portas
    if not text.isascii() or not text.isdigit():
        raise MalformedPortSpec(spec, token, instance)
    return int(text)


def parse_port_spec(spec: str, instance: str | None = None) -> List[PortRange]:
    """Converte um token de porta em uma ou mais faixas TCP.

    Nao valida limites nem ordem da faixa; ver :func:`validate_port_range`.
    """
    text = spec.strip()
    if not text or text == ALL_PORTS:
        raise MalformedPortSpec(spec, spec, instance, reason="expected a port, a list or a range")

    if "-" in text:
        parts = text.split("-")
        if len(parts) != 2:
            raise MalformedPortSpec(spec, text, instance, reason="a range needs exactly one '-'")
        from_port = _to_int(parts[0], spec, instance)
        to_port = _to_int(parts[1], spec, instance)
        return [PortRange(from_port, to_port)]

    if "," in text:
        ranges = []
        for part in text.split(","):
            port = _to_int(part, spec, instance)
            ranges.append(PortRange(port, port))
        return ranges

    port = _to_int(text, spec, instance)
    return [PortRange(port, port)]


def validate_port_range(port_range: PortRange, spec: str, instance: str | None = None) -> None:
    if not MIN_PORT <= port_range.from_port <= MAX_PORT or not MIN_PORT <= port_range.to_port <= MAX_PORT:
        raise InvalidPortRange(
            spec, spec, instance, reason=f"ports must be between {MIN_PORT} and {MAX_PORT}"
        )
    if port_range.from_port > port_range.to_port:
        raise InvalidPortRange(
            spec,
            spec,
            instance,
            reason=f"range start {port_range.from_port} is greater than end {port_range.to_port}",
        )


def expand_port_tokens(
    tokens: Iterable[str],
    instance: str | None = None,
    *,
    validate: bool = True,
) -> List[Tuple[str, PortRange]]:
    """Expande os tokens na ordem recebida em pares (token, faixa).

    Com ``all`` presente o resultado e uma unica entrada cobrindo tudo.
    """
    tokens = list(tokens)
    if any(token == ALL_PORTS for token in tokens):
        return [(ALL_PORTS, full_range())]

    expanded = []
    for token in tokens:
        for port_range in parse_port_spec(token, instance):
            if validate:
                validate_port_range(port_range, token, instance)
            expanded.append((token, port_range))
    return expanded


def format_port_range(port_range: PortRange) -> str:
    if port_range.is_full_range:
        return ALL_PORTS
    if port_range.from_port == port_range.to_port:
        return str(port_range.from_port)
    return f"{port_range.from_port}-{port_range.to_port}"
