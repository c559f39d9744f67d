import os
import tempfile
import time

# Logs dos testes fora de /var/log; precisa vir antes de importar o pacote
os.environ.setdefault("LIGHTSAIL_FW_LOG_DIR", tempfile.mkdtemp(prefix="lightsail-fw-logs-"))

import pytest
from botocore.exceptions import ClientError

from lightsail_firewall.utils import ExecutionContext


def client_error(operation: str, code: str = "InvalidInputException", message: str = "boom") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakePaginator:
    def __init__(self, client):
        self.client = client

    def paginate(self, **kwargs):
        self.client.calls.append(("get_instances", kwargs))
        if self.client.list_error is not None:
            raise self.client.list_error
        # duas paginas para exercitar a paginacao
        half = len(self.client.instances) // 2
        yield {"instances": [{"name": name} for name in self.client.instances[:half]]}
        yield {"instances": [{"name": name} for name in self.client.instances[half:]]}


class FakeLightsailClient:
    """Registra chamadas na ordem em que chegam."""

    def __init__(self, instances=(), fail_at=None, fail_instances=(), list_error=None, port_states=None, delay=0.0):
        self.instances = list(instances)
        self.fail_at = fail_at
        self.fail_instances = set(fail_instances)
        self.list_error = list_error
        self.port_states = port_states or {}
        self.delay = delay
        self.calls = []

    def get_paginator(self, name):
        assert name == "get_instances"
        return FakePaginator(self)

    @property
    def open_calls(self):
        return [kwargs for op, kwargs in self.calls if op == "open_instance_public_ports"]

    def open_instance_public_ports(self, **kwargs):
        self.calls.append(("open_instance_public_ports", kwargs))
        if self.delay:
            time.sleep(self.delay)
        n = len(self.open_calls)
        if n == self.fail_at or kwargs["instanceName"] in self.fail_instances:
            raise client_error("OpenInstancePublicPorts")
        return {"operation": {"id": f"op-{n}", "status": "Succeeded"}}

    def get_instance_port_states(self, instanceName):
        self.calls.append(("get_instance_port_states", {"instanceName": instanceName}))
        states = self.port_states.get(instanceName)
        if isinstance(states, Exception):
            raise states
        return {"portStates": states or []}


@pytest.fixture
def ctx():
    return ExecutionContext(region="ap-northeast-2")


@pytest.fixture
def make_client():
    return FakeLightsailClient
