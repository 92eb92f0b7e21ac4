"""
Testes para decodificar_payload.

Objetivo:
- Garantir que o JSON completo vira um EventoSensor com os mesmos valores.
- Garantir que campos ausentes ou com tipo errado assumem o valor padrão.
- Garantir que payload que não é objeto JSON gera ErroDecodificacao.
"""

import json
import time

import pytest

from mqtt_influx_bridge.core.decodificador import decodificar_payload
from mqtt_influx_bridge.core.erros import ErroDecodificacao

PAYLOAD_COMPLETO = {
    "sensor": "humidity",
    "sensor_id": "hum001",
    "value": 55.5,
    "unit": "%",
    "timestamp": 1700000000,
}

PADROES = {
    "sensor": "unknown",
    "sensor_id": "unknown",
    "value": 0.0,
    "unit": "",
}


def _codificar(dados) -> bytes:
    return json.dumps(dados).encode("utf-8")


def test_decodificar_payload_completo():
    # Act
    evento = decodificar_payload(_codificar(PAYLOAD_COMPLETO))

    # Assert
    assert evento.sensor == "humidity"
    assert evento.sensor_id == "hum001"
    assert evento.value == 55.5
    assert evento.unit == "%"
    assert evento.timestamp_ms == 1700000000000


def test_decodificar_timestamp_fracionario_vira_ms():
    evento = decodificar_payload(_codificar({"timestamp": 1700000000.5}))

    assert evento.timestamp_ms == 1700000000500


def test_decodificar_timestamp_trunca_fracao_de_ms():
    evento = decodificar_payload(_codificar({"timestamp": 1.0009}))

    assert evento.timestamp_ms == 1000


@pytest.mark.parametrize("ausente", ["sensor", "sensor_id", "value", "unit"])
def test_decodificar_campo_ausente_usa_padrao_so_nele(ausente):
    # Arrange: payload completo menos um campo
    dados = {k: v for k, v in PAYLOAD_COMPLETO.items() if k != ausente}

    evento = decodificar_payload(_codificar(dados))

    # O campo ausente recebe o padrão...
    assert getattr(evento, ausente) == PADROES[ausente]
    # ...e os demais continuam com o valor do payload
    for campo in PADROES:
        if campo != ausente:
            assert getattr(evento, campo) == PAYLOAD_COMPLETO[campo]
    assert evento.timestamp_ms == 1700000000000


def test_decodificar_sem_timestamp_usa_agora():
    antes = int(time.time() * 1000)
    evento = decodificar_payload(_codificar({"value": 1.0}))
    depois = int(time.time() * 1000)

    assert antes <= evento.timestamp_ms <= depois


def test_decodificar_objeto_vazio_usa_todos_os_padroes():
    antes = int(time.time() * 1000)
    evento = decodificar_payload(b"{}")

    assert evento.sensor == "unknown"
    assert evento.sensor_id == "unknown"
    assert evento.value == 0.0
    assert evento.unit == ""
    assert evento.timestamp_ms >= antes


@pytest.mark.parametrize(
    "dados",
    [
        {"sensor": 1, "sensor_id": None, "unit": ["%"], "value": "55.5"},
        {"sensor": True, "sensor_id": {"id": 1}, "unit": 3, "value": True},
    ],
)
def test_decodificar_tipos_errados_usam_padrao(dados):
    evento = decodificar_payload(_codificar(dados))

    assert evento.sensor == "unknown"
    assert evento.sensor_id == "unknown"
    assert evento.unit == ""
    assert evento.value == 0.0


def test_decodificar_valor_inteiro_vira_float():
    evento = decodificar_payload(_codificar({"value": 42}))

    assert evento.value == 42.0
    assert isinstance(evento.value, float)


@pytest.mark.parametrize("timestamp", ["1700000000", -5, None, False])
def test_decodificar_timestamp_invalido_usa_agora(timestamp):
    antes = int(time.time() * 1000)
    evento = decodificar_payload(_codificar({"timestamp": timestamp}))

    assert evento.timestamp_ms >= antes


def test_decodificar_nan_e_infinito_usam_padrao():
    antes = int(time.time() * 1000)
    evento = decodificar_payload(b'{"value": NaN, "timestamp": Infinity}')

    assert evento.value == 0.0
    assert evento.timestamp_ms >= antes


@pytest.mark.parametrize(
    "payload",
    [
        b"{nao e um json valido}",
        b"",
        b'{"sensor": "humidity"',
        b"\xff\xfe\x00",
    ],
)
def test_decodificar_json_invalido_levanta_erro(payload):
    with pytest.raises(ErroDecodificacao):
        decodificar_payload(payload)


@pytest.mark.parametrize("payload", [b"[]", b"[{}]", b"42", b'"texto"', b"null", b"true"])
def test_decodificar_documento_que_nao_e_objeto_levanta_erro(payload):
    with pytest.raises(ErroDecodificacao):
        decodificar_payload(payload)


def test_decodificar_timestamp_que_estoura_em_ms_usa_agora():
    # 1e306 é finito em segundos, mas vira infinito ao multiplicar por 1000
    antes = int(time.time() * 1000)
    evento = decodificar_payload(b'{"value": 1.0, "timestamp": 1e306}')

    assert evento.value == 1.0
    assert evento.timestamp_ms >= antes


@pytest.mark.parametrize("codificacao", ["utf-16", "utf-16-le", "utf-32"])
def test_decodificar_payload_que_nao_e_utf8_levanta_erro(codificacao):
    payload = '{"value": 1}'.encode(codificacao)

    with pytest.raises(ErroDecodificacao):
        decodificar_payload(payload)
