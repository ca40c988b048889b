"""
schemas.py

Schemas Pydantic para os corpos recebidos pela API (Pydantic v2).

Os campos obrigatórios são declarados como opcionais de propósito: a
presença é verificada nos serviços, que respondem 400 com mensagem
própria. Aqui o Pydantic só cuida do tipo (ex.: "22.5" → 22.5; "abc"
é rejeitado).
"""

from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class LeituraEntrada(BaseModel):
    """
    Leitura enviada para POST /readings:

        {
          "deviceId": "3f0c...",
          "tvoc": 1.2,
          "eco2": 400,
          "temperature": 22.5,
          "humidity": 45,
          "statusMsg": "ok"
        }
    """

    deviceId: Optional[str] = None
    tvoc: Optional[float] = None
    eco2: Optional[float] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    statusMsg: Optional[str] = None


class RelatorioEntrada(BaseModel):
    """
    Pedido de criação de relatório (POST /reports).

    `readings` é a lista que o front-end exibiu na sessão; apenas o
    tamanho é usado.
    """

    model_config = ConfigDict(populate_by_name=True)

    deviceId: Optional[str] = None
    from_: Optional[datetime] = Field(None, alias="from")
    to: Optional[datetime] = None
    name: Optional[str] = None
    userId: Optional[str] = None
    readings: Optional[List[Any]] = None

    @field_validator("from_", "to", mode="before")
    @classmethod
    def vazio_como_ausente(cls, valor):
        # "" equivale a não informado; o serviço responde com a mensagem própria
        if isinstance(valor, str) and not valor.strip():
            return None
        return valor


class DadosDispositivoEntrada(BaseModel):
    """
    Payload enviado pelo firmware do ESP32 (POST /device-data):

        {
          "deviceSerial": "ESP32-123",
          "pairingCode": "1TXUDF",
          "tvoc": 50.1,
          "eco2": 605.3,
          "temperature": 22.0,
          "humidity": 49.7,
          "statusMsg": "Data from Mock ESP32"
        }
    """

    deviceSerial: Optional[str] = None
    pairingCode: Optional[str] = None
    tvoc: Optional[float] = None
    eco2: Optional[float] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
    statusMsg: Optional[str] = None


class SessaoRespiracaoEntrada(BaseModel):
    """
    Abertura de sessão de análise (POST /breath-analysis/sessions):

        {"userId": "user-1", "deviceId": "3f0c...", "name": "Manhã"}
    """

    userId: Optional[str] = None
    deviceId: Optional[str] = None
    name: Optional[str] = None


class SessaoRespiracaoAtualizacao(BaseModel):
    """
    Campos alteráveis de uma sessão (PUT /breath-analysis/sessions/{id}).
    Só os campos informados são alterados.
    """

    name: Optional[str] = None
    isActive: Optional[bool] = None
    endTime: Optional[datetime] = None


class ProcessamentoRespiracaoEntrada(BaseModel):
    """
    Leitura enviada durante uma sessão (POST /breath-analysis/process).
    Temperatura e umidade ausentes viram 0.
    """

    sessionId: Optional[str] = None
    deviceId: Optional[str] = None
    tvoc: Optional[float] = None
    eco2: Optional[float] = None
    temperature: Optional[float] = None
    humidity: Optional[float] = None
