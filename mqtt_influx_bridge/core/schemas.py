"""
schemas.py

Modelos Pydantic que circulam pela bridge.
Compatível com Pydantic v2. Todos os modelos são imutáveis (frozen).
"""

import time
from typing import Dict, Union

from pydantic import BaseModel, ConfigDict, Field

VALOR_DESCONHECIDO = "unknown"
PRECISAO_MS = "ms"


def agora_ms() -> int:
    """Instante atual em epoch ms."""
    return int(time.time() * 1000)


class MensagemBruta(BaseModel):
    """
    Mensagem recebida do broker, antes de qualquer decodificação.
    """

    model_config = ConfigDict(frozen=True)

    topic: str
    payload: bytes


class EventoSensor(BaseModel):
    """
    Leitura de sensor já decodificada, com os padrões aplicados.

    Compatível com o payload:

        {
          "sensor": "humidity",
          "sensor_id": "hum001",
          "value": 55.5,
          "unit": "%",
          "timestamp": 1700000000.0
        }

    O timestamp do payload (segundos) é guardado em `timestamp_ms`.
    """

    model_config = ConfigDict(frozen=True)

    sensor: str = VALOR_DESCONHECIDO
    sensor_id: str = VALOR_DESCONHECIDO
    value: float = 0.0
    unit: str = ""
    timestamp_ms: int = Field(default_factory=agora_ms, ge=0)


class PontoDados(BaseModel):
    """
    Ponto pronto para o InfluxDB.

    - measurement: derivado do tópico.
    - tags: sensor, sensor_id.
    - fields: value, unit.
    - timestamp_ms: sempre em precisão de milissegundos.

    `tags` e `fields` devolvem dicionários novos a cada acesso, então o
    ponto não pode ser alterado depois de construído.
    """

    model_config = ConfigDict(frozen=True)

    measurement: str
    sensor: str
    sensor_id: str
    value: float
    unit: str
    timestamp_ms: int = Field(ge=0)
    precisao: str = PRECISAO_MS

    @property
    def tags(self) -> Dict[str, str]:
        return {"sensor": self.sensor, "sensor_id": self.sensor_id}

    @property
    def fields(self) -> Dict[str, Union[float, str]]:
        return {"value": self.value, "unit": self.unit}
