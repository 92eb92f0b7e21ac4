"""
decodificador.py

Converte o payload bruto (bytes) recebido via MQTT em um EventoSensor.

Regras:
- O payload deve ser um objeto JSON; qualquer outra coisa gera
  ErroDecodificacao.
- Cada campo (sensor, sensor_id, value, unit, timestamp) é opcional.
  Campo ausente ou com tipo errado assume o valor padrão, sem erro.
- O timestamp do payload vem em segundos (pode ter fração) e é convertido
  para ms truncando: int(ts * 1000).
"""

import json
import math
from numbers import Real
from typing import Any, Dict, Optional

from mqtt_influx_bridge.core.erros import ErroDecodificacao
from mqtt_influx_bridge.core.schemas import EventoSensor, VALOR_DESCONHECIDO, agora_ms


def _numero(valor: Any) -> Optional[float]:
    # bool é subclasse de int, mas true/false não são números aqui
    if isinstance(valor, bool) or not isinstance(valor, Real):
        return None
    try:
        numero = float(valor)
    except OverflowError:
        return None
    # NaN e Infinity passam pelo json do Python, mas não pelo InfluxDB
    return numero if math.isfinite(numero) else None


def _texto(dados: Dict[str, Any], chave: str, padrao: str) -> str:
    valor = dados.get(chave)
    return valor if isinstance(valor, str) else padrao


def _timestamp_ms(valor: Any) -> int:
    segundos = _numero(valor)
    if segundos is None or segundos < 0:
        return agora_ms()
    ms = segundos * 1000
    # finito em segundos ainda pode estourar ao virar ms (ex.: 1e306)
    if not math.isfinite(ms):
        return agora_ms()
    return int(ms)


def decodificar_payload(payload: bytes) -> EventoSensor:
    """
    Decodifica o payload e aplica os padrões campo a campo.

    Levanta ErroDecodificacao se o payload não for UTF-8/JSON válido ou se
    o documento JSON não for um objeto.
    """
    try:
        texto = payload.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise ErroDecodificacao(f"payload não é UTF-8: {exc}") from exc

    try:
        dados = json.loads(texto)
    except ValueError as exc:
        raise ErroDecodificacao(f"JSON inválido: {exc}") from exc

    if not isinstance(dados, dict):
        raise ErroDecodificacao(
            f"esperado um objeto JSON, recebido {type(dados).__name__}"
        )

    valor = _numero(dados.get("value"))

    return EventoSensor(
        sensor=_texto(dados, "sensor", VALOR_DESCONHECIDO),
        sensor_id=_texto(dados, "sensor_id", VALOR_DESCONHECIDO),
        value=valor if valor is not None else 0.0,
        unit=_texto(dados, "unit", ""),
        timestamp_ms=_timestamp_ms(dados.get("timestamp")),
    )
