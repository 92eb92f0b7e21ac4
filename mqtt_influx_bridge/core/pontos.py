"""
pontos.py

Monta o PontoDados a partir do evento decodificado e do measurement.
Os valores padrão ("unknown", "", 0.0) são gravados como qualquer outro
valor de tag/field.
"""

from mqtt_influx_bridge.core.schemas import EventoSensor, PontoDados


def construir_ponto(evento: EventoSensor, measurement: str) -> PontoDados:
    return PontoDados(
        measurement=measurement,
        sensor=evento.sensor,
        sensor_id=evento.sensor_id,
        value=evento.value,
        unit=evento.unit,
        timestamp_ms=evento.timestamp_ms,
    )
