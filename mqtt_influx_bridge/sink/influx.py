"""
influx.py

Camada de escrita no InfluxDB para os pontos montados pela bridge.

Objetivos:
- Isolar a lógica de persistência (conexão, escrita, tratamento de erro).
- Abrir um WriteApi novo a cada escrita e fechá-lo ao final, com sucesso
  ou com erro. O handle nunca é reaproveitado entre mensagens.
- Facilitar testes unitários (o cliente pode ser substituído por um fake).

Suporta InfluxDB 2.x (token/org/bucket) e a API de compatibilidade do
InfluxDB 1.8 (usuário:senha como token, org "-", bucket "database/rp").
"""

import logging
from typing import Optional

from influxdb_client import InfluxDBClient, Point, WritePrecision
from influxdb_client.client.write_api import SYNCHRONOUS

from mqtt_influx_bridge.config.settings import Settings
from mqtt_influx_bridge.core.erros import ErroEscrita, ErroSink
from mqtt_influx_bridge.core.schemas import PontoDados
from mqtt_influx_bridge.utils.logger import get_logger

logger = get_logger(__name__)

ORG_V1 = "-"


def criar_cliente_influx(settings: Settings) -> InfluxDBClient:
    """
    Cria o InfluxDBClient a partir das configurações.

    - Com INFLUXDB_TOKEN: autenticação do InfluxDB 2.x.
    - Sem token: "usuario:senha" no lugar do token (InfluxDB 1.8).
    """
    if settings.influx_usa_token:
        token = settings.INFLUXDB_TOKEN
        org = settings.INFLUXDB_ORG
    else:
        token = f"{settings.INFLUXDB_USER}:{settings.INFLUXDB_PASSWORD}"
        org = ORG_V1

    return InfluxDBClient(
        url=settings.INFLUXDB_URL,
        token=token,
        org=org,
        timeout=settings.INFLUXDB_TIMEOUT_MS,
    )


def resolver_destino(settings: Settings) -> tuple[str, str]:
    """
    Retorna (bucket, org) de acordo com a versão do InfluxDB configurada.
    """
    if settings.influx_usa_token:
        return settings.INFLUXDB_BUCKET, settings.INFLUXDB_ORG

    bucket = settings.INFLUXDB_DATABASE
    if settings.INFLUXDB_RETENTION_POLICY:
        bucket = f"{bucket}/{settings.INFLUXDB_RETENTION_POLICY}"
    return bucket, ORG_V1


def para_ponto_influx(ponto: PontoDados) -> Point:
    """
    Converte o PontoDados no Point do influxdb-client (precisão ms).
    """
    registro = Point(ponto.measurement)
    for chave, valor in ponto.tags.items():
        registro = registro.tag(chave, valor)
    for chave, valor in ponto.fields.items():
        registro = registro.field(chave, valor)
    return registro.time(ponto.timestamp_ms, WritePrecision.MS)


class GravadorInflux:
    """
    Grava um ponto por chamada no InfluxDB.

    O cliente (InfluxDBClient) é compartilhado e vive enquanto o processo
    viver; o WriteApi é aberto e fechado dentro de cada `gravar`.
    """

    def __init__(self, client: InfluxDBClient, bucket: str, org: str):
        self._client = client
        self.bucket = bucket
        self.org = org

    @classmethod
    def abrir(
        cls,
        settings: Settings,
        client: Optional[InfluxDBClient] = None,
    ) -> "GravadorInflux":
        """
        Cria o cliente e confirma que o InfluxDB responde.

        Levanta ErroSink se o InfluxDB não estiver acessível: sem sink não
        faz sentido iniciar a bridge.
        """
        if client is None:
            client = criar_cliente_influx(settings)

        try:
            disponivel = client.ping()
        except Exception as exc:
            client.close()
            raise ErroSink(f"Falha ao contatar o InfluxDB em {settings.INFLUXDB_URL}: {exc}") from exc

        if not disponivel:
            client.close()
            raise ErroSink(f"InfluxDB não respondeu ao ping em {settings.INFLUXDB_URL}.")

        bucket, org = resolver_destino(settings)
        logger.info("Conectado ao InfluxDB em %s (bucket=%s).", settings.INFLUXDB_URL, bucket)
        return cls(client, bucket=bucket, org=org)

    # ---------------- GRAVAÇÃO ---------------- #

    def gravar(self, ponto: PontoDados) -> None:
        """
        Grava um único ponto.

        Comportamento:
            - Abre um WriteApi síncrono.
            - Escreve o ponto em precisão de ms.
            - Fecha o WriteApi ao sair do bloco, mesmo em caso de erro.
            - Qualquer falha vira ErroEscrita (quem chama decide o que fazer).
        """
        registro = para_ponto_influx(ponto)

        try:
            with self._client.write_api(write_options=SYNCHRONOUS) as write_api:
                write_api.write(
                    bucket=self.bucket,
                    org=self.org,
                    record=registro,
                    write_precision=WritePrecision.MS,
                )
        except Exception as exc:
            raise ErroEscrita(
                f"Falha ao gravar ponto {ponto.measurement} no InfluxDB: {exc}"
            ) from exc

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Ponto gravado no InfluxDB: %s", registro.to_line_protocol())

    def fechar(self) -> None:
        self._client.close()
        logger.info("Conexão com o InfluxDB encerrada.")
