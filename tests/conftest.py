"""
conftest.py

Configuração de testes para o projeto mqtt-influx-bridge.

Aqui:
- Criamos Settings de teste sem ler o arquivo .env.
- Definimos fakes para o cliente paho, o cliente do InfluxDB e o gravador,
  para que nenhum teste precise de broker ou banco reais.
"""

from types import SimpleNamespace
from typing import List, Optional, Set

import pytest

from mqtt_influx_bridge.config.settings import Settings
from mqtt_influx_bridge.core.erros import ErroEscrita


class FakeReasonCode:
    def __init__(self, falha: bool = False, nome: str = "Success"):
        self.is_failure = falha
        self._nome = nome

    def __str__(self) -> str:
        return self._nome

    def __repr__(self) -> str:
        return f"FakeReasonCode({self._nome!r})"


class FakeMqttClient:
    """
    Imita o suficiente do paho.mqtt.client.Client.

    - falhas_conexao: quantas chamadas a connect() levantam OSError.
    - connack_recusados: quantos CONNACKs chegam com falha.
    - responder_connack / responder_suback: se falso, o broker "não responde".
    - subscribe_rc: código devolvido por subscribe().
    - suback_falha: se verdadeiro, o SUBACK recusa os filtros.
    """

    def __init__(
        self,
        falhas_conexao: int = 0,
        connack_recusados: int = 0,
        responder_connack: bool = True,
        responder_suback: bool = True,
        subscribe_rc: int = 0,
        suback_falha: bool = False,
        publish_rcs: Optional[List[int]] = None,
    ):
        self.falhas_conexao = falhas_conexao
        self.connack_recusados = connack_recusados
        self.responder_connack = responder_connack
        self.responder_suback = responder_suback
        self.subscribe_rc = subscribe_rc
        self.suback_falha = suback_falha
        self.publish_rcs = list(publish_rcs or [])

        self.on_connect = None
        self.on_disconnect = None
        self.on_subscribe = None
        self.on_message = None
        self.on_pre_connect = None

        # Registro ordenado de tudo o que foi chamado
        self.chamadas: List[str] = []
        self.tentativas_conexao = 0
        self.assinaturas: List[list] = []
        self.publicadas: List[tuple] = []
        self._mid = 0

    def connect(self, host, port, keepalive=60):
        self.tentativas_conexao += 1
        self.chamadas.append("connect")
        if self.tentativas_conexao <= self.falhas_conexao:
            raise ConnectionRefusedError(111, "Connection refused")

    def loop_start(self):
        self.chamadas.append("loop_start")
        if not self.responder_connack:
            return
        if self.connack_recusados > 0:
            self.connack_recusados -= 1
            self.on_connect(self, None, {}, FakeReasonCode(True, "Not authorized"), None)
        else:
            self.on_connect(self, None, {}, FakeReasonCode(False), None)

    def loop_stop(self):
        self.chamadas.append("loop_stop")

    def subscribe(self, filtros):
        self.chamadas.append("subscribe")
        if self.subscribe_rc != 0:
            return self.subscribe_rc, None
        self._mid += 1
        self.assinaturas.append(list(filtros))
        if self.responder_suback:
            codigos = [FakeReasonCode(self.suback_falha, "Granted QoS") for _ in filtros]
            self.on_subscribe(self, None, self._mid, codigos, None)
        return 0, self._mid

    def disconnect(self):
        self.chamadas.append("disconnect")
        self.on_disconnect(self, None, {}, FakeReasonCode(False), None)

    def publish(self, topic, payload, qos=0):
        self.publicadas.append((topic, payload, qos))
        rc = self.publish_rcs.pop(0) if self.publish_rcs else 0
        return SimpleNamespace(rc=rc, mid=len(self.publicadas))

    # ---------- simulações do lado do broker ---------- #

    def simular_queda(self):
        self.on_disconnect(self, None, {}, FakeReasonCode(True, "Keep alive timeout"), None)

    def simular_reconexao(self):
        if self.on_pre_connect is not None:
            self.on_pre_connect(self, None)
        self.on_connect(self, None, {}, FakeReasonCode(False), None)

    def entregar(self, topic: str, payload: bytes):
        self.on_message(self, None, SimpleNamespace(topic=topic, payload=payload))


class FakeWriteApi:
    def __init__(self, dono: "FakeInfluxClient", falhar: bool):
        self._dono = dono
        self._falhar = falhar
        self.aberto = False

    def __enter__(self):
        self.aberto = True
        self._dono.abertos += 1
        return self

    def __exit__(self, exc_type, exc, tb):
        self.aberto = False
        self._dono.fechados += 1
        return False

    def write(self, bucket, org, record, write_precision=None):
        if self._falhar:
            raise ConnectionError("influxdb fora do ar")
        self._dono.escritas.append((bucket, org, record, write_precision))


class FakeInfluxClient:
    def __init__(self, ping: bool = True, ping_erro: Optional[Exception] = None, falhar_em: Optional[Set[int]] = None):
        self._ping = ping
        self._ping_erro = ping_erro
        self._falhar_em = falhar_em or set()
        self.handles: List[FakeWriteApi] = []
        self.escritas: list = []
        self.abertos = 0
        self.fechados = 0
        self.fechado = False

    def ping(self):
        if self._ping_erro is not None:
            raise self._ping_erro
        return self._ping

    def write_api(self, write_options=None):
        handle = FakeWriteApi(self, falhar=len(self.handles) in self._falhar_em)
        self.handles.append(handle)
        return handle

    def close(self):
        self.fechado = True


class GravadorFake:
    """
    Gravador que guarda os pontos em memória.
    Levanta ErroEscrita nas chamadas cujo índice (0-based) está em falhar_em.
    """

    def __init__(self, falhar_em: Optional[Set[int]] = None):
        self._falhar_em = falhar_em or set()
        self.chamadas = 0
        self.pontos: list = []
        self.fechado = False

    def gravar(self, ponto):
        indice = self.chamadas
        self.chamadas += 1
        if indice in self._falhar_em:
            raise ErroEscrita("influxdb recusou o ponto")
        self.pontos.append(ponto)

    def fechar(self):
        self.fechado = True


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        MQTT_CLIENT_ID="bridge-teste",
        MQTT_CONNECT_TIMEOUT=0.2,
        MQTT_RETRY_DELAY_SECONDS=5.0,
        MQTT_TOPICS="sensors/#",
        MQTT_QOS=1,
        BRIDGE_KEEPALIVE_SECONDS=0.01,
        INFLUXDB_TOKEN="",
    )


@pytest.fixture
def esperas() -> List[float]:
    """Lista onde o sleep fake registra cada espera."""
    return []


@pytest.fixture
def sleep_fake(esperas):
    return esperas.append
