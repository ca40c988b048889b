"""
schemas.py

Modelos Pydantic usados nas respostas da API.

São independentes dos modelos ORM, mas compatíveis para conversão via
from_attributes. Os nomes dos campos seguem o Python (snake_case) e são
serializados em camelCase, que é o formato consumido pelo front-end.
"""

from datetime import datetime
from typing import Annotated, Dict, List, Optional, Union

from pydantic import AfterValidator, AliasGenerator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from rovocs_backend.utils.tempo import como_utc

# SQLite devolve datetimes sem fuso; todas as datas saem como UTC.
DataHoraUTC = Annotated[datetime, AfterValidator(como_utc)]


class SchemaBase(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=AliasGenerator(serialization_alias=to_camel),
    )


class DispositivoResumo(SchemaBase):
    """
    Resumo de dispositivo embutido em leituras e relatórios.
    """

    id: str
    name: str
    serial: str


class Paginacao(SchemaBase):
    total: int
    limit: int
    offset: int
    has_more: bool


# ------------------- LEITURAS ------------------- #


class LeituraOut(SchemaBase):
    """
    Representa uma leitura retornada pela API.
    """

    id: str
    device_id: str
    tvoc: float
    eco2: float
    temperature: float
    humidity: float
    status_msg: Optional[str] = None
    recorded_at: DataHoraUTC


class LeituraComDispositivoOut(LeituraOut):
    device: DispositivoResumo = Field(validation_alias="dispositivo")


class LeiturasPaginadasOut(SchemaBase):
    readings: List[LeituraComDispositivoOut]
    pagination: Paginacao


class UltimaLeituraOut(SchemaBase):
    reading: LeituraComDispositivoOut
    is_recent: bool
    time_since_reading: int


class LeiturasHojeOut(SchemaBase):
    today: int
    last24_hours: int = Field(serialization_alias="last24Hours")
    yesterday: int
    change: float


class DadosDispositivoOut(SchemaBase):
    success: bool
    message: str
    reading_id: str
    timestamp: DataHoraUTC


# ------------------- DISPOSITIVOS ------------------- #


class DispositivoVerificado(DispositivoResumo):
    last_seen: Optional[DataHoraUTC] = None


class VerificacaoOut(SchemaBase):
    verified: bool
    message: str
    device: Optional[DispositivoVerificado] = None


class DispositivoOut(DispositivoResumo):
    user_id: Optional[str] = None
    update_interval: Optional[int] = None
    created_at: DataHoraUTC
    updated_at: DataHoraUTC
    readings: List[LeituraOut] = []


class StatusDispositivoOut(SchemaBase):
    status: str
    device_id: str
    device_name: str
    user_id: str
    last_update: DataHoraUTC


# ------------------- RELATÓRIOS ------------------- #


class RelatorioOut(SchemaBase):
    """
    Relatório persistido. `from_` sai como "from" no JSON.
    """

    id: str
    user_id: str
    device_id: str
    from_: DataHoraUTC = Field(serialization_alias="from")
    to: DataHoraUTC
    file_url: str
    created_at: DataHoraUTC


class RelatorioCriadoOut(RelatorioOut):
    name: str
    readings_count: int


class RelatorioComDispositivoOut(RelatorioOut):
    device: DispositivoResumo = Field(validation_alias="dispositivo")


class RelatoriosPaginadosOut(SchemaBase):
    reports: List[RelatorioComDispositivoOut]
    pagination: Paginacao


class RelatorioDetalheOut(RelatorioComDispositivoOut):
    readings: List[LeituraOut]
    analytics: Dict[str, Union[int, float]]


class MensagemOut(SchemaBase):
    message: str


# ------------------- PAINEL ------------------- #


class TotalRecente(SchemaBase):
    total: int
    recent: int


class DispositivosPainel(SchemaBase):
    total: int
    connected: int


class TotalRelatorios(SchemaBase):
    total: int


class MediasPainel(SchemaBase):
    tvoc: float
    eco2: float
    temperature: float
    humidity: float


class EstatisticasOut(SchemaBase):
    devices: DispositivosPainel
    readings: TotalRecente
    reports: TotalRelatorios
    sessions: TotalRecente
    averages: MediasPainel


# ------------------- ANÁLISE DE RESPIRAÇÃO ------------------- #


class MetricaRespiracaoOut(SchemaBase):
    id: str
    session_id: str
    event_id: Optional[str] = None
    metric_type: str
    baseline: float
    peak: float
    peak_percent: float
    time_to_peak: Optional[float] = None
    slope: Optional[float] = None
    recovery_time: Optional[float] = None
    threshold: Optional[float] = None
    calculated_at: DataHoraUTC


class EventoRespiracaoOut(SchemaBase):
    id: str
    session_id: str
    start_time: DataHoraUTC
    end_time: Optional[DataHoraUTC] = None
    peak_time: Optional[DataHoraUTC] = None
    peak_tvoc: Optional[float] = None
    peak_eco2: Optional[float] = None
    baseline_tvoc: float
    baseline_eco2: float
    is_complete: bool
    created_at: DataHoraUTC


class EventoComMetricasOut(EventoRespiracaoOut):
    breath_metrics: List[MetricaRespiracaoOut] = Field(validation_alias="metricas")


class SessaoRespiracaoOut(SchemaBase):
    id: str
    user_id: str
    device_id: Optional[str] = None
    name: str
    start_time: DataHoraUTC
    end_time: Optional[DataHoraUTC] = None
    is_active: bool
    baseline_tvoc: Optional[float] = None
    baseline_eco2: Optional[float] = None
    created_at: DataHoraUTC
    updated_at: DataHoraUTC
    device: Optional[DispositivoResumo] = Field(None, validation_alias="dispositivo")


class SessaoRespiracaoResumoOut(SessaoRespiracaoOut):
    """
    Sessão na listagem: só os últimos sopros e métricas.
    """

    breath_events: List[EventoRespiracaoOut] = Field(validation_alias="eventos")
    breath_metrics: List[MetricaRespiracaoOut] = Field(validation_alias="metricas")


class SessoesRespiracaoPaginadasOut(SchemaBase):
    sessions: List[SessaoRespiracaoResumoOut]
    pagination: Paginacao


class AnaliseSessaoOut(SchemaBase):
    total_events: int
    completed_events: int
    avg_tvoc_baseline: Optional[float] = None
    avg_eco2_baseline: Optional[float] = None
    avg_peak_tvoc: float
    avg_peak_eco2: float
    avg_recovery_time: float


class SessaoRespiracaoDetalheOut(SessaoRespiracaoOut):
    breath_events: List[EventoComMetricasOut] = Field(validation_alias="eventos")
    breath_metrics: List[MetricaRespiracaoOut] = Field(validation_alias="metricas")
    analytics: AnaliseSessaoOut


class LinhaBaseOut(SchemaBase):
    tvoc: float
    eco2: float
    sample_count: int
    is_stable: bool
    last_updated: Optional[DataHoraUTC] = None


class SoproOut(SchemaBase):
    """
    Sopro calculado pelo analisador (ainda não necessariamente gravado).
    """

    start_time: DataHoraUTC
    end_time: Optional[DataHoraUTC] = None
    peak_time: Optional[DataHoraUTC] = None
    peak_tvoc: Optional[float] = None
    peak_eco2: Optional[float] = None
    baseline_tvoc: float
    baseline_eco2: float
    is_complete: bool


class MetricaSoproOut(SchemaBase):
    metric_type: str
    baseline: float
    peak: float
    peak_percent: float
    time_to_peak: Optional[float] = None
    slope: Optional[float] = None
    recovery_time: Optional[float] = None
    threshold: Optional[float] = None


class QualidadeSoproOut(SchemaBase):
    overall: str
    tvoc_score: int
    eco2_score: int
    recommendations: List[str]


class ProcessamentoRespiracaoOut(SchemaBase):
    reading: LeituraOut
    baseline: Optional[LinhaBaseOut] = None
    current_event: Optional[SoproOut] = None
    metrics: Optional[List[MetricaSoproOut]] = None
    breath_event: Optional[EventoRespiracaoOut] = None
    breath_metrics: Optional[List[MetricaRespiracaoOut]] = None
    signal_quality: int
    quality: Optional[QualidadeSoproOut] = None
