"""Utilitarios compartilhados: contexto de execucao e logging."""

from __future__ import annotations

import logging
import os
import threading
from logging.handlers import RotatingFileHandler
from dataclasses import dataclass, field
from pathlib import Path

import typer

LOG_NAME = "lightsail-firewall.log"
LOG_DIR = Path(os.environ.get("LIGHTSAIL_FW_LOG_DIR", "/var/log/lightsail-firewall"))
LOG_FILE = LOG_DIR / LOG_NAME
LOG_MAX_BYTES = int(os.environ.get("LIGHTSAIL_FW_LOG_MAX_BYTES", 5 * 1024 * 1024))
LOG_BACKUPS = int(os.environ.get("LIGHTSAIL_FW_LOG_BACKUP_COUNT", 3))
LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(message)s"

logger = logging.getLogger("lightsail-firewall")


def _build_file_handler(log_dir: Path = LOG_DIR) -> RotatingFileHandler:
    """Arquivo rotativo em ``log_dir``; sem permissao, ``~/.lightsail-firewall.log``."""
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        path = log_dir / LOG_NAME
        handler = RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS)
    except OSError:
        path = Path.home() / ".lightsail-firewall.log"
        handler = RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


file_handler = _build_file_handler()
# Console recebe so avisos; o detalhe de cada chamada fica no arquivo
stream_handler = logging.StreamHandler()
stream_handler.setLevel(logging.WARNING)
stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))

logger.setLevel(logging.INFO)
logger.handlers[:] = [file_handler, stream_handler]
logger.propagate = False


def active_log_file() -> Path:
    return Path(getattr(file_handler, "baseFilename", LOG_FILE))


def set_verbose(enabled: bool) -> None:
    """Espelha no console tudo que vai para o arquivo de log."""
    stream_handler.setLevel(logging.DEBUG if enabled else logging.WARNING)


@dataclass
class ExecutionContext:
    """Contexto de uma invocacao, repassado a toda chamada externa."""

    region: str | None = None
    profile: str | None = None
    dry_run: bool = False
    skip_validation: bool = False
    timeout: int = 60  # connect/read timeout por chamada, em segundos
    max_attempts: int = 3  # tentativas internas do SDK (botocore)
    workers: int = 1
    cancelled: threading.Event = field(default_factory=threading.Event)
    warnings: list = field(default_factory=list)

    def warn(self, msg: str) -> None:
        logger.warning(msg)
        self.warnings.append(msg)
        typer.secho(f"⚠ {msg}", fg=typer.colors.YELLOW)
