"""
tempo.py

Funções de data/hora usadas pelos serviços e modelos.

Todas as datas do sistema são tratadas em UTC. Alguns bancos (SQLite)
devolvem datetimes sem fuso; `como_utc` normaliza esses valores antes
de qualquer comparação com `agora_utc()`.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def agora_utc() -> datetime:
    return datetime.now(tz=timezone.utc)


def como_utc(valor: Optional[datetime]) -> Optional[datetime]:
    """
    Garante um datetime "aware" em UTC.

    - None → None
    - naive → assume UTC (é assim que gravamos)
    - aware → convertido para UTC
    """
    if valor is None:
        return None
    if valor.tzinfo is None:
        return valor.replace(tzinfo=timezone.utc)
    return valor.astimezone(timezone.utc)


def segundos_desde(instante: datetime, agora: datetime) -> float:
    return (como_utc(agora) - como_utc(instante)).total_seconds()


def inicio_do_dia(instante: datetime) -> datetime:
    """Meia-noite (UTC) do dia de `instante`."""
    return como_utc(instante).replace(hour=0, minute=0, second=0, microsecond=0)


def inicio_do_dia_anterior(instante: datetime) -> datetime:
    return inicio_do_dia(instante) - timedelta(days=1)


def data_curta(instante: datetime) -> str:
    """Data no formato M/D/AAAA, usado nos nomes padrão de relatórios."""
    return f"{instante.month}/{instante.day}/{instante.year}"
