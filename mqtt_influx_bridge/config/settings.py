"""
settings.py

Responsável por:
- Definir a configuração central do projeto (Settings).
- Ler variáveis de ambiente (ou .env) de forma tipada e validada.
- Entregar um objeto imutável, criado uma única vez no ponto de entrada
  e repassado explicitamente aos componentes.

Uso típico no ponto de entrada:

    from mqtt_influx_bridge.config.settings import get_settings

    settings = get_settings()
    gravador = GravadorInflux.abrir(settings)
"""

import uuid
from functools import lru_cache
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _gerar_client_id() -> str:
    # Cada processo precisa de um client id próprio no broker
    return f"mqtt-influx-bridge-{uuid.uuid4()}"


def _separar_lista(valor: str) -> List[str]:
    return [item.strip() for item in valor.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Classe de configuração principal do projeto.

    Herda de BaseSettings, o que faz com que:
    - valores padrão possam ser definidos aqui no código;
    - variáveis de ambiente (ou arquivo .env) possam sobrescrever esses valores;
    - todos os campos sejam validados e convertidos para os tipos corretos.

    A instância é congelada (frozen): depois de criada, nenhum componente
    consegue alterá-la.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # ---------------------------------------------------------
    # MQTT — BROKER
    # ---------------------------------------------------------
    MQTT_BROKER_HOST: str = Field(
        "localhost",
        description="Host do broker MQTT.",
    )

    MQTT_BROKER_PORT: int = Field(
        1883,
        description="Porta do broker MQTT.",
    )

    MQTT_CLIENT_ID: str = Field(
        default_factory=_gerar_client_id,
        description="Identificador do cliente MQTT (único por processo).",
    )

    MQTT_USERNAME: str = Field(
        "",
        description="Usuário do broker MQTT (vazio = sem autenticação).",
    )

    MQTT_PASSWORD: str = Field(
        "",
        description="Senha do broker MQTT.",
    )

    MQTT_CLEAN_SESSION: bool = Field(
        True,
        description="Abre sessões limpas no broker.",
    )

    MQTT_AUTO_RECONNECT: bool = Field(
        True,
        description="Se verdadeiro, a reconexão fica a cargo do loop de rede do paho.",
    )

    MQTT_CONNECT_TIMEOUT: float = Field(
        10.0,
        gt=0,
        description="Timeout (em segundos) de cada tentativa de conexão.",
    )

    MQTT_RETRY_DELAY_SECONDS: float = Field(
        5.0,
        ge=0,
        description="Intervalo fixo entre tentativas de conexão.",
    )

    MQTT_KEEPALIVE: int = Field(
        60,
        gt=0,
        description="Keepalive MQTT (segundos).",
    )

    # Filtros separados por vírgula, ex.: "sensors/#,devices/+/data"
    MQTT_TOPICS: str = Field(
        "sensors/#",
        description="Filtros de tópico assinados pela bridge.",
    )

    MQTT_QOS: int = Field(
        1,
        ge=0,
        le=2,
        description="QoS usado na assinatura dos tópicos.",
    )

    # ---------------------------------------------------------
    # INFLUXDB
    # ---------------------------------------------------------
    INFLUXDB_URL: str = Field(
        "http://localhost:8086",
        description="URL do InfluxDB.",
    )

    # InfluxDB 2.x: token + org + bucket.
    INFLUXDB_TOKEN: str = Field("", description="Token do InfluxDB 2.x.")
    INFLUXDB_ORG: str = Field("", description="Organização do InfluxDB 2.x.")
    INFLUXDB_BUCKET: str = Field("mqtt", description="Bucket do InfluxDB 2.x.")

    # InfluxDB 1.8: usado quando INFLUXDB_TOKEN está vazio.
    INFLUXDB_USER: str = Field("admin", description="Usuário do InfluxDB 1.8.")
    INFLUXDB_PASSWORD: str = Field("adminpassword", description="Senha do InfluxDB 1.8.")
    INFLUXDB_DATABASE: str = Field("mqtt", description="Database do InfluxDB 1.8.")
    INFLUXDB_RETENTION_POLICY: str = Field(
        "",
        description="Retention policy do InfluxDB 1.8 (vazio = padrão).",
    )

    INFLUXDB_TIMEOUT_MS: int = Field(
        10_000,
        gt=0,
        description="Timeout HTTP (ms) das chamadas ao InfluxDB.",
    )

    # ---------------------------------------------------------
    # DESPACHO / BRIDGE
    # ---------------------------------------------------------
    DISPATCH_WORKERS: int = Field(
        1,
        ge=1,
        description="Quantidade de threads que processam mensagens.",
    )

    DISPATCH_QUEUE_SIZE: int = Field(
        1000,
        ge=1,
        description="Capacidade da fila entre o loop MQTT e os workers.",
    )

    BRIDGE_KEEPALIVE_SECONDS: float = Field(
        1.0,
        gt=0,
        description="Intervalo de espera do loop principal da bridge.",
    )

    # ---------------------------------------------------------
    # SIMULADOR MQTT
    # ---------------------------------------------------------
    SIMULATOR_SENSORS: str = Field(
        "temperature,humidity",
        description="Sensores simulados, separados por vírgula.",
    )

    SIMULATOR_TOPIC_PREFIX: str = Field(
        "sensors",
        description="Prefixo dos tópicos publicados (<prefixo>/<sensor>).",
    )

    SIMULATOR_INTERVAL_SECONDS: float = Field(
        10.0,
        gt=0,
        description="Intervalo (em segundos) entre publicações do simulador.",
    )

    SIMULATOR_QOS: int = Field(
        1,
        ge=0,
        le=2,
        description="QoS das publicações do simulador.",
    )

    SIMULATOR_PUBLISH_MAX_RETRIES: int = Field(
        3,
        ge=1,
        description="Tentativas de publicação antes de desistir da leitura.",
    )

    # ---------------------------------------------------------
    # PUBLICADOR DE MENSAGENS DE TESTE
    # ---------------------------------------------------------
    TEST_PUBLISHER_TOPIC: str = Field(
        "test/message",
        min_length=1,
        description="Tópico das mensagens de teste genéricas.",
    )

    TEST_PUBLISHER_INTERVAL_SECONDS: float = Field(
        5.0,
        gt=0,
        description="Intervalo (em segundos) entre mensagens de teste.",
    )

    TEST_PUBLISHER_QOS: int = Field(
        1,
        ge=0,
        le=2,
        description="QoS das mensagens de teste.",
    )

    # ---------------------------------------------------------
    # LOGGING
    # ---------------------------------------------------------
    LOG_LEVEL: str = Field(
        "INFO",
        description="Nível de log padrão: DEBUG, INFO, WARNING, ERROR.",
    )

    LOG_JSON: bool = Field(
        False,
        description="Se verdadeiro, emite logs em JSON.",
    )

    LOG_PAYLOAD_MAX_CHARS: int = Field(
        200,
        ge=16,
        description="Tamanho máximo do payload reproduzido nos logs.",
    )

    # ---------------------------------------------------------
    # VALIDADORES
    # ---------------------------------------------------------

    @field_validator("LOG_LEVEL")
    def normalize_log_level(cls, v: str) -> str:
        """
        Normaliza nível de log (p.ex., "info" → "INFO") e garante valores válidos.
        """
        nivel = v.upper()
        niveis_validos = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

        if nivel not in niveis_validos:
            return "INFO"

        return nivel

    @field_validator("MQTT_TOPICS", "SIMULATOR_SENSORS")
    def exigir_ao_menos_um_item(cls, v: str) -> str:
        if not _separar_lista(v):
            raise ValueError("informe ao menos um item")
        return v

    # ---------------------------------------------------------
    # DERIVADOS
    # ---------------------------------------------------------

    @property
    def topicos(self) -> List[str]:
        """Converte 'sensors/#,devices/#' → ['sensors/#', 'devices/#']."""
        return _separar_lista(self.MQTT_TOPICS)

    @property
    def sensores_simulados(self) -> List[str]:
        return _separar_lista(self.SIMULATOR_SENSORS)

    @property
    def influx_usa_token(self) -> bool:
        return bool(self.INFLUXDB_TOKEN)


# ---------------------------------------------------------
# Instância única de configurações (criada no ponto de entrada)
# ---------------------------------------------------------
@lru_cache()
def get_settings() -> Settings:
    return Settings()
