"""
mensagens_teste.py

Publicador genérico de mensagens de teste.

Serve para verificar de ponta a ponta que o broker está aceitando
publicações, sem depender do formato de leitura de sensor. Publica em
TEST_PUBLISHER_TOPIC (padrão test/message), a cada
TEST_PUBLISHER_INTERVAL_SECONDS, mensagens numeradas a partir de 0:

    {"message": "Test message 0", "timestamp": 1700000000.123}

A bridge só consome essas mensagens se o tópico estiver em MQTT_TOPICS;
nesse caso o ponto é gravado com os valores padrão (sensor "unknown",
value 0.0).

Execução:

    python -m mqtt_influx_bridge.mqtt.simulator.mensagens_teste
"""

import sys
import time
from typing import Callable, Optional

from paho.mqtt import client as mqtt

from mqtt_influx_bridge.config.settings import Settings, get_settings
from mqtt_influx_bridge.mqtt.simulator.publisher import (
    executar_publicador,
    publicar_com_retentativas,
)
from mqtt_influx_bridge.utils.logger import get_logger

logger = get_logger(__name__)


class PublicadorMensagensTeste:
    """
    Publica mensagens de teste numeradas em um único tópico.

    O contador só avança quando a publicação é aceita pelo cliente.
    """

    def __init__(
        self,
        client: mqtt.Client,
        topic: str = "test/message",
        qos: int = 1,
        max_retries: int = 3,
        sleep=time.sleep,
    ):
        self.client = client
        self.topic = topic
        self.qos = qos
        self.max_retries = max_retries
        self._sleep = sleep
        self.contador = 0

    def gerar_payload(self) -> dict:
        return {
            "message": f"Test message {self.contador}",
            "timestamp": time.time(),
        }

    def publicar(self) -> bool:
        publicado = publicar_com_retentativas(
            self.client,
            self.topic,
            self.gerar_payload(),
            qos=self.qos,
            max_retries=self.max_retries,
            sleep=self._sleep,
        )
        if publicado:
            logger.info("Mensagem de teste %s publicada em %s.", self.contador, self.topic)
            self.contador += 1
        return publicado


def criar_publicador_teste(settings: Settings, client: mqtt.Client) -> PublicadorMensagensTeste:
    return PublicadorMensagensTeste(
        client,
        topic=settings.TEST_PUBLISHER_TOPIC,
        qos=settings.TEST_PUBLISHER_QOS,
        max_retries=settings.SIMULATOR_PUBLISH_MAX_RETRIES,
    )


def run_publicador_teste(settings: Optional[Settings] = None) -> int:
    """
    Publica uma mensagem de teste a cada TEST_PUBLISHER_INTERVAL_SECONDS
    até receber SIGINT/SIGTERM.
    """
    settings = settings if settings is not None else get_settings()

    def criar_rodada(client: mqtt.Client) -> Callable[[], None]:
        publicador = criar_publicador_teste(settings, client)
        logger.info(
            "Iniciando publicador de teste em %s, intervalo %ss.",
            publicador.topic,
            settings.TEST_PUBLISHER_INTERVAL_SECONDS,
        )
        return publicador.publicar

    return executar_publicador(
        settings,
        "publicador de teste",
        criar_rodada,
        settings.TEST_PUBLISHER_INTERVAL_SECONDS,
    )


def main() -> None:
    sys.exit(run_publicador_teste())


if __name__ == "__main__":
    main()
