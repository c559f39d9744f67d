"""Acesso a API do Lightsail via boto3."""

from __future__ import annotations

from typing import Any, Dict, List

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from lightsail_firewall.errors import InstanceListFailure, OperationCancelled, PortStateQueryFailure
from lightsail_firewall.utils import ExecutionContext, logger

SERVICE_NAME = "lightsail"


def _check_cancelled(ctx: ExecutionContext, operation: str) -> None:
    if ctx.cancelled.is_set():
        raise OperationCancelled(f"{operation} cancelled before being sent")


def get_lightsail_client(ctx: ExecutionContext):
    """Cria cliente Lightsail na regiao do contexto.

    Credenciais seguem a cadeia padrao do boto3 (env, ~/.aws, perfil).
    """
    session = boto3.Session(profile_name=ctx.profile) if ctx.profile else boto3.Session()
    config = Config(
        connect_timeout=ctx.timeout,
        read_timeout=ctx.timeout,
        retries={"max_attempts": ctx.max_attempts, "mode": "standard"},
    )
    logger.info(f"Criando cliente {SERVICE_NAME} (regiao={ctx.region}, perfil={ctx.profile})")
    return session.client(SERVICE_NAME, region_name=ctx.region, config=config)


def list_instance_names(client, ctx: ExecutionContext) -> List[str]:
    _check_cancelled(ctx, "get_instances")
    logger.info(f"Listando instancias na regiao {ctx.region}")
    names: List[str] = []
    try:
        paginator = client.get_paginator("get_instances")
        for page in paginator.paginate():
            names.extend(instance["name"] for instance in page.get("instances", []))
    except (ClientError, BotoCoreError) as exc:
        logger.error(f"Falha ao listar instancias: {exc}")
        raise InstanceListFailure(ctx.region, exc) from exc
    logger.info(f"{len(names)} instancia(s) encontrada(s)")
    return names


def open_instance_public_ports(client, request, ctx: ExecutionContext) -> Dict[str, Any]:
    """Abre uma faixa de portas; retorna a operacao reportada pelo provedor.

    Erros do SDK sobem sem tratamento para que o orquestrador os contextualize.
    """
    _check_cancelled(ctx, "open_instance_public_ports")
    logger.info(
        f"Abrindo {request.from_port}-{request.to_port}/{request.protocol} em {request.instance_name}"
    )
    response = client.open_instance_public_ports(
        instanceName=request.instance_name,
        portInfo=request.to_port_info(),
    )
    return response.get("operation", {})


def get_instance_port_states(client, instance_name: str, ctx: ExecutionContext) -> List[Dict[str, Any]]:
    _check_cancelled(ctx, "get_instance_port_states")
    logger.info(f"Consultando estado das portas de {instance_name}")
    try:
        response = client.get_instance_port_states(instanceName=instance_name)
    except (ClientError, BotoCoreError) as exc:
        logger.error(f"Falha ao consultar portas de {instance_name}: {exc}")
        raise PortStateQueryFailure(instance_name, exc) from exc
    return response.get("portStates", [])
