"""
erros.py

Exceções da bridge MQTT → InfluxDB.

Política de propagação:
- ErroSink e ErroAssinatura abortam a inicialização do processo.
- ErroConexao é retentado indefinidamente na conexão inicial.
- ErroDecodificacao e ErroEscrita descartam apenas a mensagem atual.
- ErroConexaoPerdida é apenas registrado; a reconexão segue o fluxo normal.
"""


class ErroBridge(Exception):
    """Base de todas as exceções do projeto."""


class ErroConexao(ErroBridge):
    """Broker inacessível ou conexão recusada (CONNACK com falha)."""


class ErroAssinatura(ErroBridge):
    """Falha ao assinar os tópicos. Fatal na inicialização."""


class ErroConexaoPerdida(ErroBridge):
    """Sessão com o broker caiu depois de estabelecida."""


class ErroDecodificacao(ErroBridge):
    """Payload não é um objeto JSON válido."""


class ErroEscrita(ErroBridge):
    """InfluxDB indisponível ou ponto rejeitado."""


class ErroSink(ErroBridge):
    """InfluxDB inacessível na inicialização."""
