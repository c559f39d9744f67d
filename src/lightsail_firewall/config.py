"""Configuracao via flags e arquivo YAML/JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

import typer
import yaml

from lightsail_firewall.errors import EmptySelection

DEFAULT_INSTANCE_NAMES = ["all"]
DEFAULT_PORTS = ["all"]


@dataclass(frozen=True)
class FirewallConfig:
    """Parametros de uma invocacao, montados uma vez na borda da CLI."""

    region: Optional[str] = None
    instance_names: List[str] = field(default_factory=lambda: list(DEFAULT_INSTANCE_NAMES))
    ports: List[str] = field(default_factory=lambda: list(DEFAULT_PORTS))
    profile: Optional[str] = None


class ConfigManager:
    """Carrega configuracoes de arquivo."""

    def __init__(self, config_path: str | Path | None = None):
        self.config_path = Path(config_path) if config_path else None
        self.config: Dict[str, Any] = {}
        if self.config_path and self.config_path.exists():
            self.load()

    def load(self) -> None:
        """Le o arquivo; erros de formato sobem para a CLI reportar."""
        if not self.config_path or not self.config_path.exists():
            return

        content = self.config_path.read_text()
        suffix = self.config_path.suffix
        if suffix in (".yaml", ".yml"):
            data = yaml.safe_load(content)
        elif suffix == ".json":
            data = json.loads(content)
        else:
            raise ValueError(f"Formato nao suportado: {suffix or '(sem extensao)'}")
        if data is not None and not isinstance(data, dict):
            raise ValueError(f"{self.config_path} deve conter um mapeamento no topo")
        self.config = data or {}

    def get(self, key: str, default: Any = None) -> Any:
        """Chave pontilhada, ex.: ``firewall.ports``."""
        value: Any = self.config
        for part in key.split("."):
            value = value.get(part) if isinstance(value, dict) else None
        return default if value is None else value

    @classmethod
    def create_template(cls, output_path: str | Path) -> Path:
        template = {
            "aws": {
                "region": "ap-northeast-2",
                "profile": None,
                "timeout": 60,
                "max_attempts": 3,
            },
            "firewall": {
                "instance_names": ["all"],
                "ports": ["80", "443", "8000-8100"],
                "workers": 1,
            },
        }

        path = Path(output_path)
        if path.suffix in [".yaml", ".yml"]:
            content = yaml.safe_dump(template, default_flow_style=False, sort_keys=False)
        else:
            content = json.dumps(template, indent=2)

        path.write_text(content)
        typer.secho(f"Template de configuracao criado em: {path}", fg=typer.colors.GREEN)
        return path


def split_csv(values: Iterable[Any] | str | None) -> List[str]:
    """Achata valores repetidos e separados por virgula, como um string slice.

    ``["a,b", "c"]`` vira ``["a", "b", "c"]``; entradas vazias sao descartadas.
    """
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]
    result: List[str] = []
    for value in values:
        for part in str(value).split(","):
            part = part.strip()
            if part:
                result.append(part)
    return result


def _select(flag: Optional[List[str]] | str, file_value: Any, default: List[str], option: str, key: str) -> List[str]:
    """Flag informada vence o arquivo; o arquivo vence o default.

    Flag ou chave presente mas vazia e erro: nunca cai para ``all``.
    """
    if isinstance(flag, str):
        flag = [flag]
    if flag:
        tokens = split_csv(flag)
        if not tokens:
            raise EmptySelection(option)
        return tokens
    if file_value is not None:
        tokens = split_csv(file_value)
        if not tokens:
            raise EmptySelection(key)
        return tokens
    return list(default)


def build_config(
    region: Optional[str] = None,
    instance_names: Optional[List[str]] = None,
    ports: Optional[List[str]] = None,
    profile: Optional[str] = None,
    config_manager: ConfigManager | None = None,
) -> FirewallConfig:
    """Monta a configuracao da invocacao.

    ``None`` ou lista vazia significa flag ausente. Regiao e perfil ausentes
    ficam a cargo da cadeia do boto3 (AWS_REGION, AWS_PROFILE, ~/.aws/config).
    """
    manager = config_manager or ConfigManager()

    names = _select(
        instance_names,
        manager.get("firewall.instance_names"),
        DEFAULT_INSTANCE_NAMES,
        "--instanceNames",
        "firewall.instance_names",
    )
    port_tokens = _select(ports, manager.get("firewall.ports"), DEFAULT_PORTS, "--ports", "firewall.ports")

    return FirewallConfig(
        region=region or manager.get("aws.region"),
        instance_names=names,
        ports=port_tokens,
        profile=profile or manager.get("aws.profile"),
    )
