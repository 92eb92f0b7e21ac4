"""
publisher.py

Simulador de sensores do projeto mqtt-influx-bridge.

Responsável por:
- Conectar ao broker MQTT (mesmo laço de tentativas da bridge).
- Simular sensores publicando leituras aleatórias em sensors/<sensor>.
- Publicar mensagens no formato que a bridge consome.

Os valores são apenas aleatórios dentro de uma faixa; não há preocupação
com realismo.

Execução:

    python -m mqtt_influx_bridge.mqtt.simulator.publisher
"""

import json
import random
import signal
import sys
import threading
import time
from typing import Callable, Dict, List, NamedTuple, Optional

from paho.mqtt import client as mqtt

from mqtt_influx_bridge.config.settings import Settings, get_settings
from mqtt_influx_bridge.core.erros import ErroConexao
from mqtt_influx_bridge.mqtt.conexao import GerenciadorConexao, criar_cliente_mqtt
from mqtt_influx_bridge.utils.logger import configurar_logging, get_logger

logger = get_logger(__name__)


class PerfilSensor(NamedTuple):
    sensor_id: str
    unit: str
    minimo: float
    maximo: float


CATALOGO: Dict[str, PerfilSensor] = {
    "temperature": PerfilSensor("temp001", "°C", 15.0, 30.0),
    "humidity": PerfilSensor("hum001", "%", 30.0, 80.0),
}


def publicar_com_retentativas(
    client: mqtt.Client,
    topic: str,
    payload: dict,
    qos: int = 1,
    max_retries: int = 3,
    sleep=time.sleep,
) -> bool:
    """
    Publica um payload JSON no tópico.

    Tenta até `max_retries` vezes; depois disso a mensagem é descartada.
    """
    payload_str = json.dumps(payload, ensure_ascii=False)

    for attempt in range(1, max_retries + 1):
        result = client.publish(topic, payload_str, qos=qos)

        if result.rc == mqtt.MQTT_ERR_SUCCESS:
            logger.debug("Publicado em %s: %s", topic, payload_str)
            return True

        if attempt >= max_retries:
            logger.error(
                "Falha ao publicar em %s após %s tentativas. RC=%s",
                topic,
                attempt,
                result.rc,
            )
            return False

        logger.warning(
            "Erro ao publicar em %s (tentativa %s/%s, RC=%s). Retentando em 1s.",
            topic,
            attempt,
            max_retries,
            result.rc,
        )
        sleep(1.0)

    return False


class SensorSimulado:
    """
    Representa um sensor simulado que publica leituras em um tópico MQTT.

    Cada instância desta classe:
    - possui um nome de sensor e um sensor_id próprios;
    - sorteia valores dentro da faixa do seu perfil;
    - usa o cliente MQTT compartilhado para publicar os dados.
    """

    def __init__(
        self,
        sensor: str,
        perfil: PerfilSensor,
        client: mqtt.Client,
        topic_prefix: str = "sensors",
        qos: int = 1,
        max_retries: int = 3,
        sleep=time.sleep,
    ):
        self.sensor = sensor
        self.perfil = perfil
        self.client = client
        self.qos = qos
        self.max_retries = max_retries
        self._sleep = sleep

        # Padrão de tópico: <prefixo>/<sensor>
        self.topic = f"{topic_prefix}/{sensor}"

    def gerar_payload(self) -> dict:
        """
        Gera uma leitura:

            {
              "sensor": "humidity",
              "sensor_id": "hum001",
              "value": 55.5,
              "unit": "%",
              "timestamp": 1700000000.123
            }
        """
        valor = random.uniform(self.perfil.minimo, self.perfil.maximo)

        return {
            "sensor": self.sensor,
            "sensor_id": self.perfil.sensor_id,
            "value": round(valor, 1),
            "unit": self.perfil.unit,
            "timestamp": time.time(),
        }

    def publicar(self) -> bool:
        """
        Gera uma leitura e publica no broker.
        """
        return publicar_com_retentativas(
            self.client,
            self.topic,
            self.gerar_payload(),
            qos=self.qos,
            max_retries=self.max_retries,
            sleep=self._sleep,
        )


def criar_sensores_simulados(settings: Settings, client: mqtt.Client) -> List[SensorSimulado]:
    """
    Cria os sensores listados em SIMULATOR_SENSORS.

    Sensores fora do catálogo são ignorados com aviso.
    """
    sensores = []

    for nome in settings.sensores_simulados:
        perfil = CATALOGO.get(nome)
        if perfil is None:
            logger.warning("Sensor simulado desconhecido ignorado: %s", nome)
            continue

        sensores.append(
            SensorSimulado(
                sensor=nome,
                perfil=perfil,
                client=client,
                topic_prefix=settings.SIMULATOR_TOPIC_PREFIX,
                qos=settings.SIMULATOR_QOS,
                max_retries=settings.SIMULATOR_PUBLISH_MAX_RETRIES,
            )
        )

    return sensores


def _instalar_sinais(parar: threading.Event, nome: str) -> None:
    def _tratar_sinal(signum, _frame):
        logger.info("Encerrando %s (sinal %s).", nome, signal.Signals(signum).name)
        parar.set()

    signal.signal(signal.SIGINT, _tratar_sinal)
    signal.signal(signal.SIGTERM, _tratar_sinal)


def executar_publicador(
    settings: Settings,
    nome: str,
    criar_rodada: Callable[[mqtt.Client], Callable[[], None]],
    intervalo: float,
) -> int:
    """
    Laço comum aos publicadores de exemplo.

    Fluxo:
    - conecta ao broker (tentando até conseguir);
    - monta a rodada de publicação com o cliente conectado;
    - executa uma rodada a cada `intervalo` segundos até SIGINT/SIGTERM;
    - desconecta ao sair.
    """
    configurar_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    parar = threading.Event()
    _instalar_sinais(parar, nome)

    client = criar_cliente_mqtt(settings)
    gerenciador = GerenciadorConexao(settings, client=client, parar=parar)

    try:
        gerenciador.conectar()
    except ErroConexao:
        logger.info("%s encerrado antes de conectar ao broker.", nome.capitalize())
        return 0

    rodada = criar_rodada(client)

    try:
        while not parar.is_set():
            rodada()

            # Aguarda o intervalo definido antes da próxima rodada
            parar.wait(intervalo)
    finally:
        gerenciador.desconectar()

    return 0


def run_simulator(settings: Optional[Settings] = None) -> int:
    """
    Função principal do simulador MQTT: publica uma leitura de cada sensor
    a cada SIMULATOR_INTERVAL_SECONDS.
    """
    settings = settings if settings is not None else get_settings()

    def criar_rodada(client: mqtt.Client) -> Callable[[], None]:
        sensores = criar_sensores_simulados(settings, client)
        logger.info(
            "Iniciando simulador com sensores %s, intervalo %ss.",
            [sensor.sensor for sensor in sensores],
            settings.SIMULATOR_INTERVAL_SECONDS,
        )

        def rodada() -> None:
            for sensor in sensores:
                sensor.publicar()

        return rodada

    return executar_publicador(
        settings, "simulador", criar_rodada, settings.SIMULATOR_INTERVAL_SECONDS
    )


def main() -> None:
    sys.exit(run_simulator())


if __name__ == "__main__":
    main()
