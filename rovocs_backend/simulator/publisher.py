"""
publisher.py

Simulador de dispositivo ESP32 do rovocs-backend.

Responsável por:
- Gerar leituras parecidas com as do SGP30 (TVOC/eCO2) e do BME280
  (temperatura/umidade): valor base + ruído + tendência senoidal lenta,
  limitados às faixas dos sensores.
- Enviar cada leitura via HTTP para POST /device-data, identificando-se
  pelo serial e código de pareamento do settings.
- Retentar envios com backoff exponencial.

Uso:

    python -m rovocs_backend.simulator.publisher
"""

import math
import random
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import httpx

from rovocs_backend.config.settings import settings
from rovocs_backend.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class FaixaSensor:
    """
    Parâmetros de simulação de uma grandeza.

    - base/variacao: valor médio e amplitude do ruído uniforme.
    - periodo_s/amplitude: tendência senoidal lenta.
    - minimo/maximo: limites físicos do sensor.
    """

    base: float
    variacao: float
    periodo_s: float
    amplitude: float
    minimo: float
    maximo: float


FAIXAS: Dict[str, FaixaSensor] = {
    "tvoc": FaixaSensor(base=50, variacao=20, periodo_s=10, amplitude=10, minimo=0, maximo=1000),
    "eco2": FaixaSensor(base=600, variacao=50, periodo_s=15, amplitude=20, minimo=400, maximo=2000),
    "temperature": FaixaSensor(base=22, variacao=2, periodo_s=20, amplitude=1, minimo=18, maximo=30),
    "humidity": FaixaSensor(base=50, variacao=10, periodo_s=25, amplitude=5, minimo=0, maximo=100),
}


class ESP32Simulator:
    """
    Dispositivo simulado que publica leituras via HTTP.

    Cada instância:
    - possui serial e código de pareamento próprios;
    - usa um `httpx.Client` (injetável, o que facilita testes);
    - guarda o instante de início para calcular as tendências.
    """

    def __init__(
        self,
        serial: str,
        pairing_code: str,
        url: str,
        client: httpx.Client,
        rng: Optional[random.Random] = None,
        relogio: Callable[[], float] = time.monotonic,
    ):
        self.serial = serial
        self.pairing_code = pairing_code
        self.url = url
        self.client = client
        self.rng = rng or random.Random()
        self.relogio = relogio
        self.inicio = relogio()

    def _simular(self, faixa: FaixaSensor, decorrido: float) -> float:
        ruido = (self.rng.random() - 0.5) * faixa.variacao
        tendencia = math.sin(decorrido / faixa.periodo_s) * faixa.amplitude
        valor = faixa.base + ruido + tendencia
        return min(faixa.maximo, max(faixa.minimo, valor))

    def gerar_payload(self) -> dict:
        """
        Gera o payload no formato esperado por POST /device-data:

            {
              "deviceSerial": "ESP32-123",
              "pairingCode": "1TXUDF",
              "tvoc": 51.2,
              "eco2": 604.8,
              "temperature": 22.3,
              "humidity": 49.1,
              "statusMsg": "Data from Mock ESP32"
            }
        """
        decorrido = self.relogio() - self.inicio

        payload = {
            "deviceSerial": self.serial,
            "pairingCode": self.pairing_code,
        }
        for grandeza, faixa in FAIXAS.items():
            payload[grandeza] = self._simular(faixa, decorrido)
        payload["statusMsg"] = "Data from Mock ESP32"
        return payload

    def publicar(self) -> bool:
        """
        Gera um payload e o envia ao backend.

        Erros de rede e respostas 5xx são retentados com backoff
        exponencial; respostas 4xx (dispositivo não cadastrado/pareado)
        não adiantam retentar. Retorna True se o backend aceitou a leitura.
        """
        payload = self.gerar_payload()

        delay = settings.SIMULATOR_BACKOFF_BASE
        max_retries = settings.SIMULATOR_MAX_RETRIES

        for attempt in range(1, max_retries + 1):
            try:
                resposta = self.client.post(self.url, json=payload)
            except httpx.HTTPError as exc:
                motivo = str(exc)
            else:
                if resposta.status_code < 400:
                    logger.debug(
                        "Leitura enviada: %s",
                        resposta.text,
                        extra={"serial": self.serial},
                    )
                    return True

                if resposta.status_code < 500:
                    logger.error(
                        "Backend recusou a leitura (HTTP %s): %s",
                        resposta.status_code,
                        resposta.text,
                        extra={"serial": self.serial},
                    )
                    return False

                motivo = f"HTTP {resposta.status_code}"

            if attempt >= max_retries:
                logger.error(
                    "Falha ao enviar leitura após %s tentativas (%s).",
                    attempt,
                    motivo,
                    extra={"serial": self.serial},
                )
                return False

            logger.warning(
                "Erro ao enviar leitura (tentativa %s/%s, %s). Retentando em %.2fs.",
                attempt,
                max_retries,
                motivo,
                delay,
                extra={"serial": self.serial},
            )
            time.sleep(delay)
            delay *= 2

        return False


def criar_cliente_http() -> httpx.Client:
    return httpx.Client(
        timeout=settings.SIMULATOR_TIMEOUT_SECONDS,
        headers={"User-Agent": "rovocs-esp32-simulator"},
    )


def run_simulator():
    """
    Função principal do simulador.

    Fluxo:
    - cria o cliente HTTP e o dispositivo simulado;
    - entra em um loop infinito, enviando uma leitura
      a cada SIMULATOR_INTERVAL_SECONDS segundos.
    """
    client = criar_cliente_http()
    simulador = ESP32Simulator(
        serial=settings.SIMULATOR_DEVICE_SERIAL,
        pairing_code=settings.SIMULATOR_PAIRING_CODE,
        url=settings.SIMULATOR_API_URL,
        client=client,
    )

    intervalo = settings.SIMULATOR_INTERVAL_SECONDS

    logger.info(
        "Iniciando simulador ESP32. Serial=%s, endpoint=%s, intervalo=%ss.",
        settings.SIMULATOR_DEVICE_SERIAL,
        settings.SIMULATOR_API_URL,
        intervalo,
    )

    try:
        while True:
            simulador.publicar()
            time.sleep(intervalo)
    except KeyboardInterrupt:
        logger.info("Encerrando simulador (Ctrl+C recebido).")
    finally:
        client.close()


if __name__ == "__main__":
    run_simulator()
