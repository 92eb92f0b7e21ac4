"""
despachante.py

Despacho das mensagens MQTT para o pipeline de ingestão.

O callback do paho apenas enfileira a MensagemBruta; um ou mais workers
consomem a fila e executam, para cada mensagem:

    decodificar → derivar measurement → construir ponto → gravar

Uma mensagem com problema (payload inválido, falha de escrita, erro
inesperado) é registrada em log e descartada; a próxima segue normalmente.
"""

import queue
import threading
from typing import Callable, List

from mqtt_influx_bridge.core.decodificador import decodificar_payload
from mqtt_influx_bridge.core.erros import ErroDecodificacao, ErroEscrita
from mqtt_influx_bridge.core.pontos import construir_ponto
from mqtt_influx_bridge.core.schemas import MensagemBruta
from mqtt_influx_bridge.core.topicos import derivar_measurement
from mqtt_influx_bridge.utils.logger import get_logger

logger = get_logger(__name__)

# Marca de fim da fila (um por worker)
_FIM = object()

LIMITE_PAYLOAD_LOG = 200


def resumir_payload(payload: bytes, limite: int = LIMITE_PAYLOAD_LOG) -> str:
    """
    Texto do payload para logs, truncado em `limite` caracteres.
    """
    texto = payload.decode("utf-8", errors="replace")
    if len(texto) <= limite:
        return texto
    return texto[:limite] + f"... ({len(texto)} caracteres)"


def processar_mensagem(
    mensagem: MensagemBruta,
    gravador,
    limite_log: int = LIMITE_PAYLOAD_LOG,
) -> bool:
    """
    Executa o pipeline completo para uma mensagem.

    Retorna True se o ponto foi gravado. Payload inválido e falha de
    escrita são registrados e resultam em False, sem levantar exceção.
    """
    try:
        evento = decodificar_payload(mensagem.payload)
    except ErroDecodificacao as exc:
        logger.warning(
            "Payload descartado em %s: %s | payload=%s",
            mensagem.topic,
            exc,
            resumir_payload(mensagem.payload, limite_log),
            extra={"topic": mensagem.topic},
        )
        return False

    ponto = construir_ponto(evento, derivar_measurement(mensagem.topic))

    try:
        gravador.gravar(ponto)
    except ErroEscrita as exc:
        logger.error(
            "Falha ao gravar ponto de %s: %s | payload=%s",
            mensagem.topic,
            exc,
            resumir_payload(mensagem.payload, limite_log),
            extra={"topic": mensagem.topic},
        )
        return False

    logger.debug(
        "Mensagem de %s gravada em %s (sensor_id=%s).",
        mensagem.topic,
        ponto.measurement,
        ponto.sensor_id,
    )
    return True


class Despachante:
    """
    Fila limitada + workers que processam uma mensagem por vez.

    - `processar` recebe uma MensagemBruta; qualquer exceção que escapar
      dele é registrada e o worker continua.
    - `parar` fecha a fila: cada worker recebe uma marca de fim depois das
      mensagens já enfileiradas, então as escritas em andamento terminam.
    """

    def __init__(
        self,
        processar: Callable[[MensagemBruta], object],
        workers: int = 1,
        tamanho_fila: int = 1000,
        limite_log: int = LIMITE_PAYLOAD_LOG,
    ):
        if workers < 1:
            raise ValueError("workers deve ser >= 1")

        self._processar = processar
        self._quantidade_workers = workers
        self._fila: "queue.Queue[object]" = queue.Queue(maxsize=tamanho_fila)
        self._limite_log = limite_log
        self._threads: List[threading.Thread] = []
        self._encerrado = threading.Event()

    @property
    def ativo(self) -> bool:
        return bool(self._threads) and not self._encerrado.is_set()

    def iniciar(self) -> None:
        if self._threads:
            return
        for i in range(1, self._quantidade_workers + 1):
            thread = threading.Thread(
                target=self._executar,
                name=f"despachante-{i}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        logger.info("Despachante iniciado com %s worker(s).", self._quantidade_workers)

    def enfileirar(self, mensagem: MensagemBruta) -> bool:
        """
        Coloca a mensagem na fila. Bloqueia se a fila estiver cheia,
        segurando o loop do paho até um worker liberar espaço.
        """
        if self._encerrado.is_set():
            logger.warning(
                "Despachante encerrado; mensagem de %s descartada.",
                mensagem.topic,
                extra={"topic": mensagem.topic},
            )
            return False

        self._fila.put(mensagem)
        return True

    def aguardar_fila(self) -> None:
        """Bloqueia até todas as mensagens enfileiradas serem processadas."""
        self._fila.join()

    def parar(self, timeout: float = 30.0) -> None:
        if self._encerrado.is_set():
            return
        self._encerrado.set()

        for _ in self._threads:
            self._fila.put(_FIM)
        for thread in self._threads:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Worker %s não terminou em %.1fs.", thread.name, timeout)

        logger.info("Despachante encerrado.")

    def _executar(self) -> None:
        while True:
            item = self._fila.get()
            try:
                if item is _FIM:
                    return
                self._processar(item)
            except Exception:
                logger.exception(
                    "Erro inesperado ao processar mensagem de %s | payload=%s",
                    item.topic,
                    resumir_payload(item.payload, self._limite_log),
                    extra={"topic": item.topic},
                )
            finally:
                self._fila.task_done()
