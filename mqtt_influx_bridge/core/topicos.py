"""
topicos.py

Mapeamento tópico MQTT → measurement do InfluxDB.

    sensors/temperature        → temperature
    sensors/humidity/andar-2   → humidity
    sensors                    → unknown
    sensors/                   → unknown
"""

from mqtt_influx_bridge.core.schemas import VALOR_DESCONHECIDO


def derivar_measurement(topico: str) -> str:
    """
    Retorna o segundo segmento do tópico, ou "unknown" se não existir.
    O segmento é usado como está, sem validação. Barras no fim do tópico
    são ignoradas, então "sensors/" também resulta em "unknown".
    """
    partes = topico.rstrip("/").split("/")
    if len(partes) > 1:
        return partes[1]
    return VALOR_DESCONHECIDO
