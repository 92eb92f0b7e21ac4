"""
bridge.py

Processo principal da bridge MQTT → InfluxDB.

Ordem de inicialização:
1. abre a conexão com o InfluxDB (falha aqui encerra o processo);
2. inicia os workers do despachante;
3. conecta ao broker MQTT, tentando até conseguir;
4. assina os tópicos (falha aqui encerra o processo);
5. fica em espera até receber SIGINT/SIGTERM.

Todo o trabalho acontece nos workers do despachante; o thread principal
só dorme (e, com MQTT_AUTO_RECONNECT=false, dispara a reconexão).

Encerramento: desconecta do broker, esvazia a fila do despachante e
fecha o cliente do InfluxDB.

Execução:

    python -m mqtt_influx_bridge.mqtt.bridge
"""

import functools
import signal
import sys
import threading
from typing import Optional

from mqtt_influx_bridge.config.settings import Settings, get_settings
from mqtt_influx_bridge.core.erros import ErroAssinatura, ErroConexao, ErroSink
from mqtt_influx_bridge.mqtt.conexao import GerenciadorConexao
from mqtt_influx_bridge.mqtt.despachante import Despachante, processar_mensagem
from mqtt_influx_bridge.sink.influx import GravadorInflux
from mqtt_influx_bridge.utils.logger import configurar_logging, get_logger

logger = get_logger(__name__)


class Bridge:
    """
    Liga gerenciador de conexão, despachante e gravador.
    """

    def __init__(
        self,
        settings: Settings,
        gravador: GravadorInflux,
        gerenciador: GerenciadorConexao,
        despachante: Optional[Despachante] = None,
        parar: Optional[threading.Event] = None,
    ):
        self.settings = settings
        self.gravador = gravador
        self.gerenciador = gerenciador
        self.parar = parar if parar is not None else threading.Event()

        if despachante is None:
            despachante = Despachante(
                functools.partial(
                    processar_mensagem,
                    gravador=gravador,
                    limite_log=settings.LOG_PAYLOAD_MAX_CHARS,
                ),
                workers=settings.DISPATCH_WORKERS,
                tamanho_fila=settings.DISPATCH_QUEUE_SIZE,
                limite_log=settings.LOG_PAYLOAD_MAX_CHARS,
            )
        self.despachante = despachante

    def iniciar(self) -> None:
        """
        Conecta e assina. ErroAssinatura sobe para quem chamou.
        """
        self.despachante.iniciar()
        self.gerenciador.ao_receber(self.despachante.enfileirar)
        self.gerenciador.conectar()
        self.gerenciador.assinar(self.settings.topicos, self.settings.MQTT_QOS)

        logger.info(
            "Bridge iniciada. Broker=%s:%s, Tópicos=%s, QoS=%s, InfluxDB=%s",
            self.settings.MQTT_BROKER_HOST,
            self.settings.MQTT_BROKER_PORT,
            self.settings.topicos,
            self.settings.MQTT_QOS,
            self.settings.INFLUXDB_URL,
        )

    def aguardar(self) -> None:
        """
        Loop de espera até o evento `parar` ser acionado.
        """
        intervalo = self.settings.BRIDGE_KEEPALIVE_SECONDS
        while not self.parar.wait(intervalo):
            if self.gerenciador.reconexao_pendente:
                self.gerenciador.reconectar()

    def encerrar(self) -> None:
        """
        Para de receber, termina o que já está na fila e fecha o sink.
        """
        try:
            self.gerenciador.desconectar()
        except Exception:
            logger.exception("Erro ao desconectar do broker MQTT.")
        finally:
            self.despachante.parar()
            self.gravador.fechar()


def _instalar_sinais(parar: threading.Event) -> None:
    def _tratar_sinal(signum, _frame):
        logger.info("Sinal %s recebido; encerrando bridge.", signal.Signals(signum).name)
        parar.set()

    signal.signal(signal.SIGINT, _tratar_sinal)
    signal.signal(signal.SIGTERM, _tratar_sinal)


def run_bridge(settings: Optional[Settings] = None) -> int:
    """
    Função principal da bridge. Retorna o código de saída do processo.
    """
    settings = settings if settings is not None else get_settings()
    configurar_logging(settings.LOG_LEVEL, settings.LOG_JSON)

    parar = threading.Event()
    _instalar_sinais(parar)

    try:
        gravador = GravadorInflux.abrir(settings)
    except ErroSink:
        logger.exception("InfluxDB indisponível; bridge não será iniciada.")
        return 1

    bridge = Bridge(
        settings,
        gravador=gravador,
        gerenciador=GerenciadorConexao(settings, parar=parar),
        parar=parar,
    )

    try:
        bridge.iniciar()
        bridge.aguardar()
    except ErroAssinatura:
        logger.exception("Falha ao assinar os tópicos; encerrando.")
        return 1
    except ErroConexao:
        # Só acontece quando o encerramento chega durante as tentativas
        logger.info("Encerrado antes de conectar ao broker MQTT.")
    finally:
        bridge.encerrar()

    logger.info("Bridge encerrada.")
    return 0


def main() -> None:
    sys.exit(run_bridge())


if __name__ == "__main__":
    main()
