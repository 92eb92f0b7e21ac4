"""
conexao.py

Gerenciamento da sessão MQTT da bridge.

Responsável por:
- Criar o cliente paho com sessão limpa, client id único e timeout de conexão.
- Conectar ao broker tentando indefinidamente, com intervalo fixo entre
  tentativas (sem backoff exponencial).
- Assinar os tópicos e reassiná-los a cada reconexão.
- Repassar cada mensagem recebida para o callback registrado.

Máquina de estados:

    DESCONECTADO → CONECTANDO → CONECTADO → PERDIDA → CONECTANDO → ...

Reconexão:
- MQTT_AUTO_RECONNECT=true: o loop de rede do paho reconecta sozinho,
  com o mesmo intervalo fixo.
- MQTT_AUTO_RECONNECT=false: a queda só é sinalizada; quem estiver no
  loop principal chama `reconectar()`, que volta ao laço de tentativas.

Nos dois casos as assinaturas são refeitas no on_connect.
"""

import enum
import threading
from typing import Callable, List, Optional, Tuple

from paho.mqtt import client as mqtt

from mqtt_influx_bridge.config.settings import Settings
from mqtt_influx_bridge.core.erros import ErroAssinatura, ErroConexao, ErroConexaoPerdida
from mqtt_influx_bridge.core.schemas import MensagemBruta
from mqtt_influx_bridge.utils.logger import get_logger

logger = get_logger(__name__)


class EstadoConexao(enum.Enum):
    DESCONECTADO = "desconectado"
    CONECTANDO = "conectando"
    CONECTADO = "conectado"
    PERDIDA = "perdida"
    DESCONECTANDO = "desconectando"


def criar_cliente_mqtt(settings: Settings) -> mqtt.Client:
    """
    Cria e configura o cliente paho (API de callbacks v2).

    - client id único por processo;
    - sessão limpa;
    - timeout por tentativa de conexão;
    - intervalo fixo para a reconexão automática do loop de rede, que só
      fica ligada com MQTT_AUTO_RECONNECT.
    """
    client = mqtt.Client(
        callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
        client_id=settings.MQTT_CLIENT_ID,
        clean_session=settings.MQTT_CLEAN_SESSION,
        reconnect_on_failure=settings.MQTT_AUTO_RECONNECT,
    )
    client.connect_timeout = settings.MQTT_CONNECT_TIMEOUT

    atraso = max(1, int(settings.MQTT_RETRY_DELAY_SECONDS))
    client.reconnect_delay_set(min_delay=atraso, max_delay=atraso)

    if settings.MQTT_USERNAME:
        client.username_pw_set(settings.MQTT_USERNAME, settings.MQTT_PASSWORD or None)

    return client


class GerenciadorConexao:
    """
    Dono exclusivo da sessão com o broker e do seu estado.

    Parâmetros:
        settings: configurações imutáveis do processo.
        client: cliente paho (ou fake nos testes). Se omitido, é criado.
        parar: evento de encerramento; cancela o laço de tentativas.
        sleep: função de espera entre tentativas (substituível nos testes).
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[mqtt.Client] = None,
        parar: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], object]] = None,
    ):
        self._settings = settings
        self._client = client if client is not None else criar_cliente_mqtt(settings)
        self._parar = parar if parar is not None else threading.Event()
        self._sleep = sleep if sleep is not None else self._parar.wait

        self._lock = threading.Lock()
        self._estado = EstadoConexao.DESCONECTADO
        self._assinaturas: List[Tuple[str, int]] = []
        self._ao_receber: Optional[Callable[[MensagemBruta], object]] = None

        self._connack = threading.Event()
        self._falha_connack: Optional[str] = None
        self._suback = threading.Event()
        self._codigos_suback: list = []
        self._reconexao_pendente = threading.Event()

        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_subscribe = self._on_subscribe
        self._client.on_message = self._on_message
        self._client.on_pre_connect = self._on_pre_connect

    # ---------------- ESTADO ---------------- #

    @property
    def estado(self) -> EstadoConexao:
        return self._estado

    @property
    def assinaturas(self) -> List[Tuple[str, int]]:
        return list(self._assinaturas)

    @property
    def reconexao_pendente(self) -> bool:
        return self._reconexao_pendente.is_set()

    def _definir_estado(self, novo: EstadoConexao) -> EstadoConexao:
        with self._lock:
            anterior = self._estado
            self._estado = novo
        if anterior != novo:
            logger.debug("Estado da conexão MQTT: %s → %s", anterior.value, novo.value)
        return anterior

    def ao_receber(self, callback: Callable[[MensagemBruta], object]) -> None:
        """Registra quem recebe cada mensagem que chegar do broker."""
        self._ao_receber = callback

    # ---------------- CONEXÃO ---------------- #

    def conectar(self) -> None:
        """
        Conecta ao broker, tentando até conseguir.

        Não há limite de tentativas: com o broker alcançável a conexão
        acontece em algum momento. Só levanta ErroConexao se o evento
        `parar` for acionado durante as tentativas.
        """
        atraso = self._settings.MQTT_RETRY_DELAY_SECONDS
        tentativa = 0

        while True:
            if self._parar.is_set():
                self._definir_estado(EstadoConexao.DESCONECTADO)
                raise ErroConexao("Conexão ao broker cancelada pelo encerramento do processo.")

            tentativa += 1
            self._definir_estado(EstadoConexao.CONECTANDO)
            try:
                self._handshake()
            except ErroConexao as exc:
                self._definir_estado(EstadoConexao.DESCONECTADO)
                logger.warning(
                    "Erro ao conectar ao broker MQTT %s:%s (tentativa %s): %s. Retentando em %.1fs.",
                    self._settings.MQTT_BROKER_HOST,
                    self._settings.MQTT_BROKER_PORT,
                    tentativa,
                    exc,
                    atraso,
                    extra={"attempt": tentativa},
                )
                self._sleep(atraso)
                continue

            logger.info(
                "Conectado ao broker MQTT %s:%s após %s tentativa(s). client_id=%s",
                self._settings.MQTT_BROKER_HOST,
                self._settings.MQTT_BROKER_PORT,
                tentativa,
                self._settings.MQTT_CLIENT_ID,
            )
            return

    def _handshake(self) -> None:
        """
        Uma tentativa: abre o socket, inicia o loop de rede e espera o
        CONNACK por até MQTT_CONNECT_TIMEOUT segundos.
        """
        timeout = self._settings.MQTT_CONNECT_TIMEOUT
        self._connack.clear()
        self._falha_connack = None

        try:
            self._client.connect(
                self._settings.MQTT_BROKER_HOST,
                self._settings.MQTT_BROKER_PORT,
                keepalive=self._settings.MQTT_KEEPALIVE,
            )
        except (OSError, ValueError) as exc:
            # socket.timeout, ConnectionRefusedError e gaierror são OSError
            raise ErroConexao(str(exc)) from exc

        self._client.loop_start()

        if not self._connack.wait(timeout):
            self._client.loop_stop()
            raise ErroConexao(f"sem CONNACK em {timeout:.1f}s")

        if self._falha_connack is not None:
            self._client.loop_stop()
            raise ErroConexao(f"conexão recusada pelo broker: {self._falha_connack}")

    def reconectar(self) -> None:
        """
        Volta ao laço de tentativas depois de uma queda (reconexão
        automática desligada). As assinaturas são refeitas no on_connect.
        """
        self._reconexao_pendente.clear()
        logger.info("Reconectando ao broker MQTT.")
        self._client.loop_stop()
        self.conectar()

    def desconectar(self) -> None:
        """
        Encerra a sessão de forma intencional (sem aviso de queda).
        """
        self._definir_estado(EstadoConexao.DESCONECTANDO)
        try:
            self._client.disconnect()
        finally:
            self._client.loop_stop()
            self._definir_estado(EstadoConexao.DESCONECTADO)
        logger.info("Desconectado do broker MQTT.")

    # ---------------- ASSINATURA ---------------- #

    def assinar(self, topicos: List[str], qos: int) -> None:
        """
        Assina os filtros de tópico com o QoS informado e espera o SUBACK.

        Levanta ErroAssinatura se o SUBSCRIBE não puder ser enviado, se o
        broker recusar algum filtro ou se o SUBACK não chegar a tempo.
        """
        filtros = [(topico, qos) for topico in topicos]
        if not filtros:
            raise ErroAssinatura("Nenhum tópico informado para assinatura.")

        self._suback.clear()
        self._codigos_suback = []

        resultado, _mid = self._client.subscribe(filtros)
        if resultado != mqtt.MQTT_ERR_SUCCESS:
            raise ErroAssinatura(
                f"Falha ao enviar SUBSCRIBE para {topicos}: {mqtt.error_string(resultado)}"
            )

        timeout = self._settings.MQTT_CONNECT_TIMEOUT
        if not self._suback.wait(timeout):
            raise ErroAssinatura(f"SUBACK não recebido em {timeout:.1f}s para {topicos}.")

        recusados = [
            topico
            for topico, codigo in zip(topicos, self._codigos_suback)
            if getattr(codigo, "is_failure", False)
        ]
        if recusados:
            raise ErroAssinatura(f"Broker recusou a assinatura de {recusados}.")

        self._assinaturas = filtros
        for topico, qos_topico in filtros:
            logger.info("Assinado tópico %s (QoS %s).", topico, qos_topico)

    def _reassinar(self) -> None:
        # Roda no thread do paho: não dá para esperar o SUBACK aqui
        resultado, _mid = self._client.subscribe(list(self._assinaturas))
        if resultado != mqtt.MQTT_ERR_SUCCESS:
            logger.error(
                "Falha ao reassinar %s após reconexão: %s",
                [topico for topico, _ in self._assinaturas],
                mqtt.error_string(resultado),
            )
            return
        logger.info("Tópicos reassinados após reconexão: %s", [topico for topico, _ in self._assinaturas])

    # ---------------- CALLBACKS DO PAHO ---------------- #

    def _on_pre_connect(self, client, userdata):
        # Chamado também antes de cada reconexão automática do paho
        with self._lock:
            if self._estado == EstadoConexao.PERDIDA:
                self._estado = EstadoConexao.CONECTANDO

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.error("Broker MQTT recusou a conexão: %s", reason_code)
            self._falha_connack = str(reason_code)
            self._connack.set()
            return

        anterior = self._definir_estado(EstadoConexao.CONECTADO)
        self._connack.set()

        if self._assinaturas:
            logger.info("Sessão MQTT restabelecida (estado anterior: %s).", anterior.value)
            self._reassinar()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        with self._lock:
            anterior = self._estado
            if anterior == EstadoConexao.CONECTADO:
                self._estado = EstadoConexao.PERDIDA

        if anterior != EstadoConexao.CONECTADO:
            # Desconexão intencional ou falha durante o handshake
            return

        erro = ErroConexaoPerdida(f"Conexão com o broker MQTT perdida: {reason_code}")
        if self._settings.MQTT_AUTO_RECONNECT:
            logger.warning("%s. Aguardando reconexão automática.", erro, extra={"state": "perdida"})
        else:
            logger.warning("%s. Reconexão será feita pelo loop principal.", erro, extra={"state": "perdida"})
            self._reconexao_pendente.set()

    def _on_subscribe(self, client, userdata, mid, reason_code_list, properties=None):
        self._codigos_suback = list(reason_code_list)
        falhas = [codigo for codigo in reason_code_list if getattr(codigo, "is_failure", False)]
        if falhas:
            logger.error("SUBACK com falha (mid=%s): %s", mid, falhas)
        self._suback.set()

    def _on_message(self, client, userdata, msg):
        if self._ao_receber is None:
            logger.warning("Mensagem em %s descartada: nenhum receptor registrado.", msg.topic)
            return

        try:
            self._ao_receber(MensagemBruta(topic=msg.topic, payload=msg.payload))
        except Exception:
            # Exceção aqui derrubaria o loop de rede do paho
            logger.exception("Erro ao repassar mensagem recebida em %s.", msg.topic)
