"""
analise_respiracao.py

Detecção de sopros (exalações) na série de leituras de um dispositivo e
cálculo das métricas de cada sopro.

Para cada leitura, em ordem cronológica:

1. Início do sopro: com a linha de base estável, TVOC ou eCO2 sobe mais
   de 15% acima dela.
2. Durante o sopro: acompanha os picos de TVOC e eCO2. O sopro termina
   quando TVOC e eCO2 voltam a menos de 5% da linha de base registrada
   no início.
3. Linha de base: média das últimas 30 leituras de ambiente (~60 s a
   0,5 Hz). Leituras de um sopro não entram na média. Fica estável
   depois de 10 atualizações seguidas variando menos de 3%.
4. Sopro concluído: calcula as métricas por grandeza e libera o
   analisador para o próximo sopro.

Métricas por grandeza (tvoc, eco2):

- peak_percent  = (pico - base) / base * 100
- time_to_peak  = pico - início (s)
- slope         = (pico - base) / time_to_peak
- recovery_time = fim - pico (s)
- threshold     = base + 5% da base
"""

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from rovocs_backend.utils.tempo import como_utc

JANELA_LINHA_BASE = 30
LIMIAR_ESTABILIDADE = 0.03
DURACAO_ESTABILIDADE = 10
LIMIAR_RECUPERACAO = 0.05
LIMIAR_SOPRO = 0.15

# Histórico mantido pelo analisador (e analisado a cada requisição)
JANELA_HISTORICO = timedelta(minutes=5)

GRANDEZAS = ("tvoc", "eco2")


@dataclass
class AmostraSensor:
    tvoc: float
    eco2: float
    temperature: float
    humidity: float
    recorded_at: datetime

    @classmethod
    def de_leitura(cls, leitura) -> "AmostraSensor":
        return cls(
            tvoc=leitura.tvoc,
            eco2=leitura.eco2,
            temperature=leitura.temperature,
            humidity=leitura.humidity,
            recorded_at=como_utc(leitura.recorded_at),
        )


@dataclass
class LinhaBase:
    tvoc: float = 0.0
    eco2: float = 0.0
    sample_count: int = 0
    is_stable: bool = False
    last_updated: Optional[datetime] = None


@dataclass
class EventoSopro:
    start_time: datetime
    baseline_tvoc: float
    baseline_eco2: float
    end_time: Optional[datetime] = None
    peak_time: Optional[datetime] = None
    peak_tvoc: Optional[float] = None
    peak_eco2: Optional[float] = None
    is_complete: bool = False


@dataclass
class MetricaSopro:
    metric_type: str
    baseline: float
    peak: float
    peak_percent: float
    time_to_peak: Optional[float] = None
    slope: Optional[float] = None
    recovery_time: Optional[float] = None
    threshold: Optional[float] = None


@dataclass
class ResultadoAnalise:
    """
    O que mudou com uma leitura.

    - baseline: presente quando a linha de base está estável.
    - event: presente quando a leitura iniciou ou concluiu um sopro.
    - metrics: preenchida quando a leitura concluiu um sopro.
    """

    baseline: Optional[LinhaBase] = None
    event: Optional[EventoSopro] = None
    metrics: List[MetricaSopro] = field(default_factory=list)


def _variacao(valor: float, referencia: float) -> float:
    # Referência zero nunca é considerada estável nem recuperada
    if referencia == 0:
        return math.inf
    return abs(valor - referencia) / referencia


def _aumento(valor: float, referencia: float) -> float:
    if referencia == 0:
        return math.inf if valor > 0 else 0.0
    return (valor - referencia) / referencia


class AnalisadorRespiracao:
    """
    Máquina de estados alimentada leitura a leitura via `adicionar`.
    """

    def __init__(self):
        self.leituras: List[AmostraSensor] = []
        self.linha_base = LinhaBase()
        self.evento_atual: Optional[EventoSopro] = None

    def adicionar(self, amostra: AmostraSensor) -> ResultadoAnalise:
        resultado = ResultadoAnalise()
        em_sopro = self.evento_atual is not None

        if self._detectar_evento(amostra):
            resultado.event = replace(self.evento_atual)

        if not em_sopro and self.evento_atual is None:
            self._atualizar_linha_base(amostra)

        if self.linha_base.is_stable:
            resultado.baseline = replace(self.linha_base)

        if self.evento_atual is not None and self.evento_atual.is_complete:
            resultado.metrics = calcular_metricas(self.evento_atual)
            self.evento_atual = None

        return resultado

    def _atualizar_linha_base(self, amostra: AmostraSensor) -> None:
        self.leituras.append(amostra)
        corte = amostra.recorded_at - JANELA_HISTORICO
        self.leituras = [l for l in self.leituras if l.recorded_at > corte]

        if len(self.leituras) < JANELA_LINHA_BASE:
            return

        janela = self.leituras[-JANELA_LINHA_BASE:]
        tvoc = sum(l.tvoc for l in janela) / len(janela)
        eco2 = sum(l.eco2 for l in janela) / len(janela)

        base = self.linha_base
        estavel = (
            _variacao(tvoc, base.tvoc) < LIMIAR_ESTABILIDADE
            and _variacao(eco2, base.eco2) < LIMIAR_ESTABILIDADE
        )
        base.sample_count = base.sample_count + 1 if estavel else 0
        base.tvoc = tvoc
        base.eco2 = eco2
        base.last_updated = amostra.recorded_at
        base.is_stable = base.sample_count >= DURACAO_ESTABILIDADE

    def _detectar_evento(self, amostra: AmostraSensor) -> bool:
        """
        Retorna True quando a leitura inicia ou conclui um sopro.
        """
        evento = self.evento_atual

        if evento is None:
            base = self.linha_base
            if not base.is_stable:
                return False
            if (
                _aumento(amostra.tvoc, base.tvoc) > LIMIAR_SOPRO
                or _aumento(amostra.eco2, base.eco2) > LIMIAR_SOPRO
            ):
                self.evento_atual = EventoSopro(
                    start_time=amostra.recorded_at,
                    baseline_tvoc=base.tvoc,
                    baseline_eco2=base.eco2,
                    peak_time=amostra.recorded_at,
                    peak_tvoc=amostra.tvoc,
                    peak_eco2=amostra.eco2,
                )
                return True
            return False

        if amostra.tvoc > evento.peak_tvoc:
            evento.peak_tvoc = amostra.tvoc
            evento.peak_time = amostra.recorded_at
        if amostra.eco2 > evento.peak_eco2:
            evento.peak_eco2 = amostra.eco2

        if (
            _variacao(amostra.tvoc, evento.baseline_tvoc) < LIMIAR_RECUPERACAO
            and _variacao(amostra.eco2, evento.baseline_eco2) < LIMIAR_RECUPERACAO
        ):
            evento.end_time = amostra.recorded_at
            evento.is_complete = True
            return True

        return False


def calcular_metrica(
    grandeza: str, pico: float, base: float, evento: EventoSopro
) -> MetricaSopro:
    metrica = MetricaSopro(
        metric_type=grandeza,
        baseline=base,
        peak=pico,
        peak_percent=(pico - base) / base * 100 if base else 0.0,
    )

    # O instante do pico é o do pico de TVOC, usado para as duas grandezas
    if evento.peak_time is not None:
        metrica.time_to_peak = (evento.peak_time - evento.start_time).total_seconds()
        if metrica.time_to_peak > 0:
            metrica.slope = (pico - base) / metrica.time_to_peak

    if evento.peak_time is not None and evento.end_time is not None:
        metrica.recovery_time = (evento.end_time - evento.peak_time).total_seconds()
        metrica.threshold = base + LIMIAR_RECUPERACAO * base

    return metrica


def calcular_metricas(evento: EventoSopro) -> List[MetricaSopro]:
    if not evento.is_complete:
        return []

    metricas = []
    for grandeza in GRANDEZAS:
        pico = getattr(evento, f"peak_{grandeza}")
        if not pico:
            continue
        base = getattr(evento, f"baseline_{grandeza}")
        metricas.append(calcular_metrica(grandeza, pico, base, evento))
    return metricas


def qualidade_sinal(amostra: AmostraSensor, linha_base: LinhaBase) -> int:
    """
    Nota 0-100 da leitura: perde 25 pontos por grandeza fora da faixa
    plausível. Sem linha de base estável a nota é 0.
    """
    if not linha_base.is_stable:
        return 0

    plausiveis = (
        0 < amostra.tvoc < 10000,
        0 < amostra.eco2 < 10000,
        -10 < amostra.temperature < 60,
        0 <= amostra.humidity <= 100,
    )
    return max(0, 100 - 25 * plausiveis.count(False))


def avaliar_qualidade(metricas: List[MetricaSopro]) -> Dict[str, Any]:
    """
    Avaliação do sopro a partir das métricas de TVOC e eCO2.

    Cada grandeza recebe 100 (pico alto e recuperação rápida), 50 ou 25;
    a média define "excellent" (>= 70), "fair" (>= 50) ou "poor".
    """
    por_tipo = {metrica.metric_type: metrica for metrica in metricas}
    recomendacoes = []

    nota_tvoc = 0
    tvoc = por_tipo.get("tvoc")
    if tvoc is not None:
        if tvoc.peak_percent > 25 and tvoc.recovery_time and tvoc.recovery_time < 20:
            nota_tvoc = 100
        elif tvoc.peak_percent > 10:
            nota_tvoc = 50
        else:
            nota_tvoc = 25
            recomendacoes.append(
                "Low VOC concentration detected. Try deeper breathing."
            )

    nota_eco2 = 0
    eco2 = por_tipo.get("eco2")
    if eco2 is not None:
        if eco2.peak_percent > 15 and eco2.recovery_time and eco2.recovery_time < 30:
            nota_eco2 = 100
        elif eco2.peak_percent > 5:
            nota_eco2 = 50
        else:
            nota_eco2 = 25
            recomendacoes.append(
                "Low CO2 concentration detected. Ensure proper exhalation."
            )

    media = (nota_tvoc + nota_eco2) / 2
    if media >= 70:
        geral = "excellent"
    elif media >= 50:
        geral = "fair"
    else:
        geral = "poor"
        recomendacoes.append(
            "Consider consulting a healthcare professional for respiratory assessment."
        )

    return {
        "overall": geral,
        "tvoc_score": nota_tvoc,
        "eco2_score": nota_eco2,
        "recommendations": recomendacoes,
    }
