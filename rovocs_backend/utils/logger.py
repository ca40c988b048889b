"""
logger.py

Padroniza os logs do backend.

- Respeita `settings.LOG_LEVEL` e `settings.LOG_JSON`.
- Configura um handler de console único (sem handlers duplicados).
- Propaga campos de contexto passados via `extra=` (device_id, serial,
  user_id, path, status_code) para o JSON ou para o sufixo da linha.
- Expõe `get_logger(name)` para uso nos módulos.

Exemplo:

    logger = get_logger(__name__)
    logger.info("Leitura registrada.", extra={"device_id": leitura.device_id})
"""

import json
import logging
from typing import Any, Dict

from rovocs_backend.config.settings import settings

_CONFIGURED = False

CAMPOS_CONTEXTO = ("device_id", "serial", "user_id", "path", "status_code")


def _extrair_contexto(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        campo: getattr(record, campo)
        for campo in CAMPOS_CONTEXTO
        if getattr(record, campo, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """
    Formata cada evento de log como uma linha JSON.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
        }
        payload.update(_extrair_contexto(record))
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


class ContextoFormatter(logging.Formatter):
    """
    Formato texto; anexa `chave=valor` dos campos de contexto ao fim da linha.
    """

    def format(self, record: logging.LogRecord) -> str:
        linha = super().format(record)
        contexto = _extrair_contexto(record)
        if not contexto:
            return linha

        sufixo = " ".join(f"{chave}={valor}" for chave, valor in contexto.items())
        # Mantém o traceback (se houver) no final
        primeira, sep, resto = linha.partition("\n")
        return f"{primeira} [{sufixo}]{sep}{resto}"


def _configure_logging() -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    root = logging.getLogger()
    root.setLevel(settings.LOG_LEVEL)

    handler = logging.StreamHandler()

    if settings.LOG_JSON:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = ContextoFormatter(
            fmt="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    handler.setFormatter(formatter)

    # Evita acumular handlers se o módulo for importado várias vezes
    root.handlers.clear()
    root.addHandler(handler)

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """
    Retorna um logger configurado.
    """
    if not _CONFIGURED:
        _configure_logging()
    return logging.getLogger(name)
