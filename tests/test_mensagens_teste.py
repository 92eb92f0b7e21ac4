"""
Testes do publicador genérico de mensagens de teste.

Objetivos:
- Conferir o formato {"message", "timestamp"} e a numeração a partir de 0.
- Garantir que o contador só avança quando a publicação é aceita.
- Exercitar o laço comum de publicação (conectar, rodadas, desconectar).
"""

import json
import time

from conftest import FakeMqttClient
from mqtt_influx_bridge.config.settings import Settings
from mqtt_influx_bridge.core.decodificador import decodificar_payload
from mqtt_influx_bridge.mqtt.simulator import mensagens_teste, publisher
from mqtt_influx_bridge.mqtt.simulator.mensagens_teste import (
    PublicadorMensagensTeste,
    criar_publicador_teste,
)


def _publicador(client, **kwargs):
    return PublicadorMensagensTeste(client, sleep=lambda _s: None, **kwargs)


def test_publicar_mensagens_numeradas_no_topico_padrao():
    client = FakeMqttClient()
    publicador = _publicador(client)
    antes = time.time()

    assert publicador.publicar() is True
    assert publicador.publicar() is True

    assert [(t, q) for t, _p, q in client.publicadas] == [("test/message", 1), ("test/message", 1)]
    primeira, segunda = (json.loads(p) for _t, p, _q in client.publicadas)
    assert primeira["message"] == "Test message 0"
    assert segunda["message"] == "Test message 1"
    assert isinstance(primeira["timestamp"], float)
    assert primeira["timestamp"] >= antes


def test_contador_nao_avanca_quando_publicacao_falha():
    client = FakeMqttClient(publish_rcs=[4, 4, 0])
    publicador = _publicador(client, max_retries=2)

    assert publicador.publicar() is False
    assert publicador.contador == 0
    assert publicador.publicar() is True

    # A mensagem perdida é reenviada com o mesmo número
    assert json.loads(client.publicadas[-1][1])["message"] == "Test message 0"
    assert publicador.contador == 1


def test_bridge_aceita_mensagem_de_teste_com_padroes():
    client = FakeMqttClient()
    _publicador(client).publicar()

    evento = decodificar_payload(client.publicadas[0][1].encode("utf-8"))

    assert evento.sensor == "unknown"
    assert evento.value == 0.0
    assert evento.timestamp_ms > 0


def test_criar_publicador_usa_settings():
    settings = Settings(
        _env_file=None,
        TEST_PUBLISHER_TOPIC="lab/ping",
        TEST_PUBLISHER_QOS=0,
        SIMULATOR_PUBLISH_MAX_RETRIES=5,
    )

    publicador = criar_publicador_teste(settings, FakeMqttClient())

    assert publicador.topic == "lab/ping"
    assert publicador.qos == 0
    assert publicador.max_retries == 5


def test_run_publicador_teste_publica_ate_parar(monkeypatch):
    # Arrange: cliente fake, sem sinais nem reconfiguração de logging
    client = FakeMqttClient()
    eventos = []
    monkeypatch.setattr(publisher, "criar_cliente_mqtt", lambda settings: client)
    monkeypatch.setattr(publisher, "configurar_logging", lambda *args, **kwargs: None)
    monkeypatch.setattr(publisher, "_instalar_sinais", lambda parar, nome: eventos.append(parar))

    publicar_original = PublicadorMensagensTeste.publicar

    def publicar_e_parar(self):
        resultado = publicar_original(self)
        if self.contador == 2:
            eventos[0].set()
        return resultado

    monkeypatch.setattr(PublicadorMensagensTeste, "publicar", publicar_e_parar)
    settings = Settings(_env_file=None, MQTT_CONNECT_TIMEOUT=0.2, TEST_PUBLISHER_INTERVAL_SECONDS=0.01)

    # Act
    codigo = mensagens_teste.run_publicador_teste(settings)

    # Assert
    assert codigo == 0
    assert [json.loads(p)["message"] for _t, p, _q in client.publicadas] == [
        "Test message 0",
        "Test message 1",
    ]
    assert client.chamadas[0] == "connect"
    assert client.chamadas[-2:] == ["disconnect", "loop_stop"]
