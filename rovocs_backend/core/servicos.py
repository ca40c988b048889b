"""
servicos.py

Regras de cada endpoint, como funções simples:
recebem dados já parseados, falam com os repositórios e devolvem o
conteúdo da resposta (ou levantam BadRequest / NotFound).

Nenhuma função guarda estado entre requisições. O parâmetro `agora`
existe para que os testes controlem o relógio.
"""

import math
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Union

from rovocs_backend.core.analise_respiracao import (
    JANELA_HISTORICO,
    AmostraSensor,
    AnalisadorRespiracao,
    ResultadoAnalise,
    avaliar_qualidade,
    qualidade_sinal,
)
from rovocs_backend.core.erros import BadRequest, NotFound
from rovocs_backend.core.schemas import (
    DadosDispositivoEntrada,
    LeituraEntrada,
    ProcessamentoRespiracaoEntrada,
    RelatorioEntrada,
    SessaoRespiracaoAtualizacao,
    SessaoRespiracaoEntrada,
)
from rovocs_backend.database.modelagem_banco import (
    Dispositivo,
    EventoRespiracao,
    Leitura,
    MetricaRespiracao,
    Relatorio,
    SessaoRespiracao,
)
from rovocs_backend.database.repositorio import (
    DispositivoRepositorio,
    LeituraRepositorio,
    RelatorioRepositorio,
    SessaoRespiracaoRepositorio,
)
from rovocs_backend.utils.logger import get_logger
from rovocs_backend.utils.tempo import (
    agora_utc,
    como_utc,
    data_curta,
    inicio_do_dia,
    inicio_do_dia_anterior,
    segundos_desde,
)

logger = get_logger(__name__)

# Janelas de "dado ao vivo"
JANELA_VERIFICACAO = timedelta(minutes=2)
JANELA_LEITURA_RECENTE = timedelta(minutes=5)

LIMITE_LEITURAS_RELATORIO = 100
LIMITE_LEITURAS_DISPOSITIVO = 10

LIMITE_EVENTOS_RESUMO = 5
LIMITE_METRICAS_RESUMO = 10

_dispositivos = DispositivoRepositorio()
_leituras = LeituraRepositorio()
_relatorios = RelatorioRepositorio()
_sessoes = SessaoRespiracaoRepositorio()


def _paginacao(total: int, limite: int, deslocamento: int) -> Dict[str, Any]:
    return {
        "total": total,
        "limit": limite,
        "offset": deslocamento,
        "has_more": deslocamento + limite < total,
    }


# ------------------- DISPOSITIVOS ------------------- #


def verificar_dispositivo(
    serial: Optional[str],
    code: Optional[str],
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Verifica o pareamento: o dispositivo existe e enviou dados nos
    últimos 2 minutos?

    Dispositivo inexistente não é erro: durante o pareamento é o estado
    normal até o cadastro acontecer, então a resposta é apenas
    `verified=False`.

    O `code` é exigido mas ainda não é conferido contra nada.
    """
    if not serial or not code:
        raise BadRequest("Serial and code are required")

    agora = agora or agora_utc()

    dispositivo = _dispositivos.buscar_por_serial(serial)
    if dispositivo is None:
        logger.debug("Verificação de serial desconhecido.", extra={"serial": serial})
        return {"verified": False, "message": "Device not found"}

    ultima = _leituras.ultima_por_dispositivo(dispositivo.id)
    resumo = {
        "id": dispositivo.id,
        "name": dispositivo.name,
        "serial": dispositivo.serial,
    }

    recente = (
        ultima is not None
        and segundos_desde(ultima.recorded_at, agora)
        < JANELA_VERIFICACAO.total_seconds()
    )

    if recente:
        return {
            "verified": True,
            "message": "Device verified successfully",
            "device": {**resumo, "last_seen": ultima.recorded_at},
        }

    return {
        "verified": False,
        "message": "Waiting for device to send data...",
        "device": resumo,
    }


def listar_dispositivos(user_id: Optional[str]) -> List[Dict[str, Any]]:
    """
    Dispositivos do usuário, cada um com sua leitura mais recente.
    """
    if not user_id:
        raise BadRequest("User ID is required")

    resultado = []
    for dispositivo in _dispositivos.listar_por_usuario(user_id):
        ultima = _leituras.ultima_por_dispositivo(dispositivo.id)
        resultado.append(
            _dispositivo_com_leituras(dispositivo, [ultima] if ultima else [])
        )
    return resultado


def obter_dispositivo(device_id: str) -> Dict[str, Any]:
    dispositivo = _dispositivos.buscar_por_id(device_id)
    if dispositivo is None:
        raise NotFound("Device not found")

    leituras = _leituras.ultimas_por_dispositivo(
        device_id, limite=LIMITE_LEITURAS_DISPOSITIVO
    )
    return _dispositivo_com_leituras(dispositivo, leituras)


def _dispositivo_com_leituras(
    dispositivo: Dispositivo, leituras: List[Leitura]
) -> Dict[str, Any]:
    return {
        "id": dispositivo.id,
        "name": dispositivo.name,
        "serial": dispositivo.serial,
        "user_id": dispositivo.user_id,
        "update_interval": dispositivo.update_interval,
        "created_at": dispositivo.created_at,
        "updated_at": dispositivo.updated_at,
        "readings": leituras,
    }


def _dispositivo_pareado(serial: str) -> Dispositivo:
    dispositivo = _dispositivos.buscar_por_serial(serial)
    if dispositivo is None:
        raise NotFound("Device not found. Please register the device first.")
    if dispositivo.user_id is None:
        raise BadRequest("Device not paired with any user account")
    return dispositivo


def status_dispositivo(serial: Optional[str], code: Optional[str]) -> Dict[str, Any]:
    """
    Consulta feita pelo firmware para saber se está conectado/pareado.
    """
    if not serial or not code:
        raise BadRequest("Missing device serial or pairing code")

    dispositivo = _dispositivos.buscar_por_serial(serial)
    if dispositivo is None:
        raise NotFound("Device not found")
    if dispositivo.user_id is None:
        raise BadRequest("Device not paired")

    return {
        "status": "connected",
        "device_id": dispositivo.id,
        "device_name": dispositivo.name,
        "user_id": dispositivo.user_id,
        "last_update": dispositivo.updated_at,
    }


def receber_dados_dispositivo(
    entrada: DadosDispositivoEntrada,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Upload vindo do firmware, identificado pelo serial (não pelo id).

    Temperatura e umidade são opcionais aqui (sensor BME280 ausente → 0).
    """
    if (
        not entrada.deviceSerial
        or not entrada.pairingCode
        or entrada.tvoc is None
        or entrada.eco2 is None
    ):
        raise BadRequest("Missing required fields")

    dispositivo = _dispositivo_pareado(entrada.deviceSerial)

    leitura = _gravar_leitura(
        device_id=dispositivo.id,
        tvoc=entrada.tvoc,
        eco2=entrada.eco2,
        temperature=entrada.temperature or 0.0,
        humidity=entrada.humidity or 0.0,
        status_msg=entrada.statusMsg or "Data received",
    )
    _dispositivos.registrar_atividade(dispositivo.id, agora or agora_utc())

    return {
        "success": True,
        "message": "Data received successfully",
        "reading_id": leitura.id,
        "timestamp": leitura.recorded_at,
    }


# ------------------- LEITURAS ------------------- #


def _gravar_leitura(
    device_id: str,
    tvoc: float,
    eco2: float,
    temperature: float,
    humidity: float,
    status_msg: Optional[str],
    recorded_at: Optional[datetime] = None,
) -> Leitura:
    """
    Único ponto de criação de leituras; sem `recorded_at` o instante é
    atribuído na gravação.
    """
    leitura = Leitura(
        device_id=device_id,
        tvoc=float(tvoc),
        eco2=float(eco2),
        temperature=float(temperature),
        humidity=float(humidity),
        status_msg=status_msg,
    )
    if recorded_at is not None:
        leitura.recorded_at = recorded_at

    leitura = _leituras.salvar(leitura)
    logger.info("Leitura registrada.", extra={"device_id": device_id})
    return leitura


def criar_leitura(entrada: LeituraEntrada) -> Leitura:
    """
    Cria uma leitura para um dispositivo existente.

    A checagem é de presença (None), não de "falsy": 0 é um valor válido.
    """
    obrigatorios = (entrada.tvoc, entrada.eco2, entrada.temperature, entrada.humidity)
    if not entrada.deviceId or any(valor is None for valor in obrigatorios):
        raise BadRequest(
            "deviceId, tvoc, eco2, temperature, and humidity are required"
        )

    if _dispositivos.buscar_por_id(entrada.deviceId) is None:
        logger.warning(
            "Leitura recusada: dispositivo inexistente.",
            extra={"device_id": entrada.deviceId},
        )
        raise NotFound("Device not found")

    return _gravar_leitura(
        device_id=entrada.deviceId,
        tvoc=entrada.tvoc,
        eco2=entrada.eco2,
        temperature=entrada.temperature,
        humidity=entrada.humidity,
        status_msg=entrada.statusMsg or None,
    )


def obter_ultima_leitura(
    device_id: Optional[str],
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Leitura mais recente de um dispositivo + indicador de "ao vivo"
    (menos de 5 minutos) e segundos decorridos (arredondado para baixo).

    Não confere se o dispositivo existe: sem leituras → 404.
    """
    if not device_id:
        raise BadRequest("Device ID is required")

    leitura = _leituras.ultima_por_dispositivo(device_id)
    if leitura is None:
        raise NotFound("No readings found for this device")

    decorrido = segundos_desde(leitura.recorded_at, agora or agora_utc())

    return {
        "reading": leitura,
        "is_recent": decorrido < JANELA_LEITURA_RECENTE.total_seconds(),
        "time_since_reading": math.floor(decorrido),
    }


def listar_leituras(
    device_id: Optional[str] = None,
    user_id: Optional[str] = None,
    limite: int = 50,
    deslocamento: int = 0,
) -> Dict[str, Any]:
    leituras, total = _leituras.listar_paginado(
        device_id=device_id,
        user_id=user_id,
        limite=limite,
        deslocamento=deslocamento,
    )
    return {
        "readings": leituras,
        "pagination": _paginacao(total, limite, deslocamento),
    }


def contar_leituras_hoje(
    user_id: Optional[str],
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Contadores do painel: hoje (desde 00:00 UTC), últimas 24h e ontem,
    com a variação percentual hoje x ontem.
    """
    if not user_id:
        raise BadRequest("User ID is required")

    agora = como_utc(agora or agora_utc())
    hoje = inicio_do_dia(agora)
    ontem = inicio_do_dia_anterior(agora)

    total_hoje = _leituras.contar_por_usuario(user_id, desde=hoje)
    total_24h = _leituras.contar_por_usuario(user_id, desde=agora - timedelta(hours=24))
    total_ontem = _leituras.contar_por_usuario(user_id, desde=ontem, ate=hoje)

    # Número (uma casa decimal), não texto
    variacao = 0.0
    if total_ontem > 0:
        variacao = round((total_hoje - total_ontem) / total_ontem * 100, 1)

    return {
        "today": total_hoje,
        "last24_hours": total_24h,
        "yesterday": total_ontem,
        "change": variacao,
    }


# ------------------- PAINEL ------------------- #


def obter_estatisticas(
    user_id: Optional[str],
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Resumo do painel de um usuário:

    - devices: total e conectados (última leitura há menos de 5 minutos).
    - readings / sessions: total e últimas 24h.
    - reports: total.
    - averages: médias de hoje (desde 00:00 UTC), 2 casas decimais.
    """
    if not user_id:
        raise BadRequest("User ID is required")

    agora = como_utc(agora or agora_utc())
    ultimas_24h = agora - timedelta(hours=24)

    dispositivos = _dispositivos.listar_por_usuario(user_id)
    conectados = 0
    for dispositivo in dispositivos:
        ultima = _leituras.ultima_por_dispositivo(dispositivo.id)
        if (
            ultima is not None
            and segundos_desde(ultima.recorded_at, agora)
            < JANELA_LEITURA_RECENTE.total_seconds()
        ):
            conectados += 1

    medias = _leituras.medias_por_usuario(user_id, desde=inicio_do_dia(agora))

    return {
        "devices": {"total": len(dispositivos), "connected": conectados},
        "readings": {
            "total": _leituras.contar_por_usuario(user_id),
            "recent": _leituras.contar_por_usuario(user_id, desde=ultimas_24h),
        },
        "reports": {"total": _relatorios.contar_por_usuario(user_id)},
        "sessions": {
            "total": _sessoes.contar_por_usuario(user_id),
            "recent": _sessoes.contar_por_usuario(user_id, desde=ultimas_24h),
        },
        "averages": {grandeza: round(valor, 2) for grandeza, valor in medias.items()},
    }


# ------------------- RELATÓRIOS ------------------- #


def listar_relatorios(
    user_id: Optional[str],
    limite: int = 20,
    deslocamento: int = 0,
) -> Dict[str, Any]:
    if not user_id:
        raise BadRequest("User ID is required")

    relatorios, total = _relatorios.listar_paginado(
        user_id=user_id,
        limite=limite,
        deslocamento=deslocamento,
    )
    return {
        "reports": relatorios,
        "pagination": _paginacao(total, limite, deslocamento),
    }


def criar_relatorio(
    entrada: RelatorioEntrada,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Registra um relatório de sessão.

    Dono do relatório: `userId` informado ou, na falta dele, o dono do
    dispositivo. O arquivo ainda não é gerado; `file_url` é só um caminho
    sintetizado. `readingsCount` é o tamanho da lista enviada pelo cliente.
    """
    if not entrada.deviceId or entrada.from_ is None or entrada.to is None:
        raise BadRequest("deviceId, from, and to are required")

    dispositivo = _dispositivos.buscar_por_id(entrada.deviceId)
    if dispositivo is None:
        raise NotFound("Device not found")

    user_id = entrada.userId or dispositivo.user_id
    if not user_id:
        raise BadRequest("User ID is required")

    agora = agora or agora_utc()
    file_url = f"/reports/{int(agora.timestamp() * 1000)}-{entrada.deviceId}.json"

    relatorio = _relatorios.salvar(
        Relatorio(
            user_id=user_id,
            device_id=entrada.deviceId,
            from_=como_utc(entrada.from_),
            to=como_utc(entrada.to),
            file_url=file_url,
            created_at=agora,
        )
    )
    logger.info(
        "Relatório %s criado.",
        relatorio.id,
        extra={"device_id": entrada.deviceId, "user_id": user_id},
    )

    return {
        "id": relatorio.id,
        "user_id": relatorio.user_id,
        "device_id": relatorio.device_id,
        "from_": relatorio.from_,
        "to": relatorio.to,
        "file_url": relatorio.file_url,
        "created_at": relatorio.created_at,
        "name": entrada.name or f"Session Report - {data_curta(agora)}",
        "readings_count": len(entrada.readings) if entrada.readings else 0,
    }


def _media(valores: List[float]) -> float:
    return sum(valores) / len(valores) if valores else 0.0


def calcular_analise(leituras: List[Leitura]) -> Dict[str, Union[int, float]]:
    """
    Estatísticas simples das leituras de um relatório (0 quando vazio).
    """
    tvoc = [leitura.tvoc for leitura in leituras]
    eco2 = [leitura.eco2 for leitura in leituras]

    return {
        "totalReadings": len(leituras),
        "avgTVOC": _media(tvoc),
        "avgECO2": _media(eco2),
        "avgTemperature": _media([leitura.temperature for leitura in leituras]),
        "avgHumidity": _media([leitura.humidity for leitura in leituras]),
        "maxTVOC": max(tvoc, default=0.0),
        "minTVOC": min(tvoc, default=0.0),
        "maxECO2": max(eco2, default=0.0),
        "minECO2": min(eco2, default=0.0),
    }


def obter_relatorio(relatorio_id: str) -> Dict[str, Any]:
    relatorio = _relatorios.buscar_por_id(relatorio_id)
    if relatorio is None:
        raise NotFound("Report not found")

    leituras = _leituras.listar_no_intervalo(
        relatorio.device_id,
        inicio=relatorio.from_,
        fim=relatorio.to,
        limite=LIMITE_LEITURAS_RELATORIO,
    )

    return {
        "id": relatorio.id,
        "user_id": relatorio.user_id,
        "device_id": relatorio.device_id,
        "from_": relatorio.from_,
        "to": relatorio.to,
        "file_url": relatorio.file_url,
        "created_at": relatorio.created_at,
        "dispositivo": relatorio.dispositivo,
        "readings": leituras,
        "analytics": calcular_analise(leituras),
    }


def remover_relatorio(relatorio_id: str) -> Dict[str, str]:
    if not _relatorios.remover(relatorio_id):
        raise NotFound("Report not found")

    logger.info("Relatório %s removido.", relatorio_id)
    return {"message": "Report deleted successfully"}


# ------------------- ANÁLISE DE RESPIRAÇÃO ------------------- #


def _campos_sessao(sessao: SessaoRespiracao) -> Dict[str, Any]:
    return {
        "id": sessao.id,
        "user_id": sessao.user_id,
        "device_id": sessao.device_id,
        "name": sessao.name,
        "start_time": sessao.start_time,
        "end_time": sessao.end_time,
        "is_active": sessao.is_active,
        "baseline_tvoc": sessao.baseline_tvoc,
        "baseline_eco2": sessao.baseline_eco2,
        "created_at": sessao.created_at,
        "updated_at": sessao.updated_at,
        "dispositivo": sessao.dispositivo,
    }


def criar_sessao_respiracao(
    entrada: SessaoRespiracaoEntrada,
    agora: Optional[datetime] = None,
) -> SessaoRespiracao:
    if not entrada.userId or not entrada.deviceId or not entrada.name:
        raise BadRequest("userId, deviceId, and name are required")

    if _dispositivos.buscar_por_id(entrada.deviceId) is None:
        raise NotFound("Device not found")

    sessao = _sessoes.salvar(
        SessaoRespiracao(
            user_id=entrada.userId,
            device_id=entrada.deviceId,
            name=entrada.name,
            start_time=agora or agora_utc(),
            is_active=True,
        )
    )
    logger.info(
        "Sessão de respiração %s aberta.",
        sessao.id,
        extra={"device_id": entrada.deviceId, "user_id": entrada.userId},
    )
    return _sessoes.buscar_por_id(sessao.id)


def listar_sessoes_respiracao(
    user_id: Optional[str],
    limite: int = 20,
    deslocamento: int = 0,
) -> Dict[str, Any]:
    """
    Sessões do usuário (mais recentes primeiro), cada uma com os últimos
    sopros e métricas.
    """
    if not user_id:
        raise BadRequest("userId is required")

    sessoes, total = _sessoes.listar_paginado(
        user_id=user_id,
        limite=limite,
        deslocamento=deslocamento,
    )
    return {
        "sessions": [
            {
                **_campos_sessao(sessao),
                "eventos": sessao.eventos[:LIMITE_EVENTOS_RESUMO],
                "metricas": sessao.metricas[:LIMITE_METRICAS_RESUMO],
            }
            for sessao in sessoes
        ],
        "pagination": _paginacao(total, limite, deslocamento),
    }


def obter_sessao_respiracao(sessao_id: str) -> Dict[str, Any]:
    sessao = _sessoes.buscar_por_id(sessao_id)
    if sessao is None:
        raise NotFound("Session not found")

    eventos = sessao.eventos
    return {
        **_campos_sessao(sessao),
        "eventos": eventos,
        "metricas": sessao.metricas,
        "analytics": {
            "total_events": len(eventos),
            "completed_events": sum(1 for evento in eventos if evento.is_complete),
            "avg_tvoc_baseline": sessao.baseline_tvoc,
            "avg_eco2_baseline": sessao.baseline_eco2,
            "avg_peak_tvoc": _media([e.peak_tvoc or 0.0 for e in eventos]),
            "avg_peak_eco2": _media([e.peak_eco2 or 0.0 for e in eventos]),
            "avg_recovery_time": _media(
                [m.recovery_time or 0.0 for m in sessao.metricas]
            ),
        },
    }


def atualizar_sessao_respiracao(
    sessao_id: str,
    entrada: SessaoRespiracaoAtualizacao,
) -> SessaoRespiracao:
    """
    Renomeia, encerra/reabre ou define o fim de uma sessão.
    """
    campos: Dict[str, Any] = {}
    if entrada.name is not None:
        campos["name"] = entrada.name
    if entrada.isActive is not None:
        campos["is_active"] = entrada.isActive
    if entrada.endTime is not None:
        campos["end_time"] = como_utc(entrada.endTime)

    sessao = _sessoes.atualizar(sessao_id, **campos)
    if sessao is None:
        raise NotFound("Session not found")
    return sessao


def remover_sessao_respiracao(sessao_id: str) -> Dict[str, str]:
    if not _sessoes.remover(sessao_id):
        raise NotFound("Session not found")

    logger.info("Sessão de respiração %s removida.", sessao_id)
    return {"message": "Session deleted successfully"}


def processar_respiracao(
    entrada: ProcessamentoRespiracaoEntrada,
    agora: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Grava a leitura e reanalisa os últimos 5 minutos do dispositivo.

    - Linha de base estável → copiada para a sessão.
    - Sopro concluído por esta leitura → gravado com suas métricas e
      avaliado.
    - `current_event` é o sopro em andamento (ou o recém-concluído).
    """
    if (
        not entrada.sessionId
        or not entrada.deviceId
        or entrada.tvoc is None
        or entrada.eco2 is None
    ):
        raise BadRequest("sessionId, deviceId, tvoc, and eco2 are required")

    sessao = _sessoes.buscar_por_id(entrada.sessionId)
    if sessao is None:
        raise NotFound("Session not found")
    if not sessao.is_active:
        raise BadRequest("Session is not active")
    if _dispositivos.buscar_por_id(entrada.deviceId) is None:
        raise NotFound("Device not found")

    agora = como_utc(agora or agora_utc())
    leitura = _gravar_leitura(
        device_id=entrada.deviceId,
        tvoc=entrada.tvoc,
        eco2=entrada.eco2,
        temperature=entrada.temperature or 0.0,
        humidity=entrada.humidity or 0.0,
        status_msg="Breath analysis reading",
        recorded_at=agora,
    )

    analisador = AnalisadorRespiracao()
    resultado = ResultadoAnalise()
    for recente in _leituras.listar_desde(entrada.deviceId, agora - JANELA_HISTORICO):
        resultado = analisador.adicionar(AmostraSensor.de_leitura(recente))

    resposta: Dict[str, Any] = {
        "reading": leitura,
        "baseline": resultado.baseline,
        "current_event": resultado.event or analisador.evento_atual,
        "metrics": resultado.metrics or None,
        "breath_event": None,
        "breath_metrics": None,
        "signal_quality": qualidade_sinal(
            AmostraSensor.de_leitura(leitura), analisador.linha_base
        ),
        "quality": None,
    }

    if resultado.baseline is not None:
        _sessoes.atualizar(
            sessao.id,
            baseline_tvoc=resultado.baseline.tvoc,
            baseline_eco2=resultado.baseline.eco2,
        )

    if resultado.metrics:
        evento, metricas = _sessoes.registrar_sopro(
            EventoRespiracao(session_id=sessao.id, **asdict(resultado.event)),
            [
                MetricaRespiracao(session_id=sessao.id, **asdict(metrica))
                for metrica in resultado.metrics
            ],
        )
        resposta["breath_event"] = evento
        resposta["breath_metrics"] = metricas
        resposta["quality"] = avaliar_qualidade(resultado.metrics)
        logger.info(
            "Sopro registrado na sessão %s.",
            sessao.id,
            extra={"device_id": entrada.deviceId, "user_id": sessao.user_id},
        )

    return resposta
