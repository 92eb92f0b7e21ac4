"""
logger.py

Utilitário simples para padronizar logs do projeto.

- `configurar_logging(nivel, json_logs)` é chamado pelo ponto de entrada
  com os valores de Settings (LOG_LEVEL / LOG_JSON).
- Configura um handler de console único para evitar handlers duplicados.
- Exponibiliza `get_logger(name)` para uso nos módulos.
"""

import json
import logging
from typing import Any, Dict

_CONFIGURED = False

# Campos passados via `extra=` que também vão para o JSON
_CAMPOS_EXTRAS = ("topic", "attempt", "state")


class JSONFormatter(logging.Formatter):
    """
    Formata logs como JSON, incluindo campos básicos.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
        }
        for campo in _CAMPOS_EXTRAS:
            if hasattr(record, campo):
                payload[campo] = getattr(record, campo)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def configurar_logging(nivel: str = "INFO", json_logs: bool = False) -> None:
    """
    (Re)configura o logger raiz. Pode ser chamado de novo pelo ponto de
    entrada depois que as configurações forem carregadas.
    """
    global _CONFIGURED

    root = logging.getLogger()
    root.setLevel(nivel)

    handler = logging.StreamHandler()

    if json_logs:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    handler.setFormatter(formatter)

    # Evita acumular handlers se a configuração rodar várias vezes
    root.handlers.clear()
    root.addHandler(handler)

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """
    Retorna um logger configurado.
    """
    if not _CONFIGURED:
        configurar_logging()
    return logging.getLogger(name)
