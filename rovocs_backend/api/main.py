"""
main.py

API HTTP do rovocs-backend usando FastAPI.

Rotas principais:
- GET    /ping
- GET    /devices/verify
- GET    /devices
- GET    /devices/{device_id}
- GET    /device-data
- POST   /device-data
- GET    /readings/latest
- GET    /readings/today
- GET    /readings
- POST   /readings
- GET    /reports
- POST   /reports
- GET    /reports/{report_id}
- DELETE /reports/{report_id}
- GET    /dashboard/stats
- POST   /breath-analysis/sessions
- GET    /breath-analysis/sessions
- GET    /breath-analysis/sessions/{session_id}
- PUT    /breath-analysis/sessions/{session_id}
- DELETE /breath-analysis/sessions/{session_id}
- POST   /breath-analysis/process

Erros sempre saem como `{"error": "..."}`.
"""

from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from rovocs_backend.api.schemas import (
    DadosDispositivoOut,
    DispositivoOut,
    EstatisticasOut,
    LeituraOut,
    LeiturasHojeOut,
    LeiturasPaginadasOut,
    MensagemOut,
    ProcessamentoRespiracaoOut,
    RelatorioCriadoOut,
    RelatorioDetalheOut,
    RelatoriosPaginadosOut,
    SessaoRespiracaoDetalheOut,
    SessaoRespiracaoOut,
    SessoesRespiracaoPaginadasOut,
    StatusDispositivoOut,
    UltimaLeituraOut,
    VerificacaoOut,
)
from rovocs_backend.config.settings import settings
from rovocs_backend.core import servicos
from rovocs_backend.core.erros import ErroAPI
from rovocs_backend.core.schemas import (
    DadosDispositivoEntrada,
    LeituraEntrada,
    ProcessamentoRespiracaoEntrada,
    RelatorioEntrada,
    SessaoRespiracaoAtualizacao,
    SessaoRespiracaoEntrada,
)
from rovocs_backend.database import modelagem_banco
from rovocs_backend.utils.logger import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Cria as tabelas no startup e libera o pool de conexões no shutdown.
    """
    modelagem_banco.inicializar_banco()
    logger.info("API iniciada. Banco: %s", settings.DB_URL)
    yield
    modelagem_banco.engine.dispose()
    logger.info("API encerrada.")


app = FastAPI(
    title="rovocs-backend API",
    version="0.1.0",
    description="API de leituras, pareamento de dispositivos e relatórios de sessão.",
    lifespan=lifespan,
)


# ------------------- ERROS ------------------- #


@app.exception_handler(ErroAPI)
async def tratar_erro_api(request: Request, exc: ErroAPI):
    logger.debug(
        "Requisição recusada: %s",
        exc.mensagem,
        extra={"path": request.url.path, "status_code": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.mensagem})


@app.exception_handler(RequestValidationError)
async def tratar_erro_validacao(request: Request, exc: RequestValidationError):
    """
    Parâmetros com tipo/valor inválido (limit="abc", offset=-1, JSON
    quebrado...) viram 400 no mesmo formato dos demais erros.
    """
    detalhes = "; ".join(
        f"{'.'.join(str(parte) for parte in erro['loc'])}: {erro['msg']}"
        for erro in exc.errors()
    )
    return JSONResponse(
        status_code=400,
        content={"error": f"Invalid request: {detalhes}"},
    )


@app.exception_handler(Exception)
async def tratar_erro_interno(request: Request, exc: Exception):
    logger.exception(
        "Erro interno ao processar requisição.",
        extra={"path": request.url.path, "status_code": 500},
    )
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ------------------- HEALTHCHECK ------------------- #


@app.get("/ping")
def ping():
    """
    Endpoint simples para healthcheck.
    """
    return {"status": "ok"}


# ------------------- DISPOSITIVOS ------------------- #


@app.get(
    "/devices/verify",
    response_model=VerificacaoOut,
    response_model_exclude_none=True,
    summary="Verifica o pareamento de um dispositivo",
)
def verificar_dispositivo(
    serial: Optional[str] = Query(None, description="Serial do dispositivo"),
    code: Optional[str] = Query(None, description="Código de pareamento"),
):
    """
    `verified=true` quando o dispositivo enviou dados nos últimos 2 minutos.
    """
    return servicos.verificar_dispositivo(serial, code)


@app.get(
    "/devices",
    response_model=List[DispositivoOut],
    summary="Lista os dispositivos de um usuário",
)
def listar_dispositivos(
    userId: Optional[str] = Query(None, description="Dono dos dispositivos"),
):
    return servicos.listar_dispositivos(userId)


@app.get(
    "/devices/{device_id}",
    response_model=DispositivoOut,
    summary="Detalha um dispositivo com as últimas leituras",
)
def obter_dispositivo(device_id: str):
    return servicos.obter_dispositivo(device_id)


@app.get(
    "/device-data",
    response_model=StatusDispositivoOut,
    summary="Status de conexão consultado pelo firmware",
)
def status_dispositivo(
    serial: Optional[str] = Query(None),
    code: Optional[str] = Query(None),
):
    return servicos.status_dispositivo(serial, code)


@app.post(
    "/device-data",
    response_model=DadosDispositivoOut,
    summary="Recebe dados enviados pelo ESP32",
)
def receber_dados_dispositivo(entrada: DadosDispositivoEntrada):
    return servicos.receber_dados_dispositivo(entrada)


# ------------------- LEITURAS ------------------- #


@app.get(
    "/readings/latest",
    response_model=UltimaLeituraOut,
    summary="Leitura mais recente de um dispositivo",
)
def obter_ultima_leitura(
    deviceId: Optional[str] = Query(None, description="Id do dispositivo"),
):
    return servicos.obter_ultima_leitura(deviceId)


@app.get(
    "/readings/today",
    response_model=LeiturasHojeOut,
    summary="Contadores de leituras de hoje, 24h e ontem",
)
def contar_leituras_hoje(userId: Optional[str] = Query(None)):
    return servicos.contar_leituras_hoje(userId)


@app.get(
    "/readings",
    response_model=LeiturasPaginadasOut,
    summary="Lista leituras por dispositivo ou usuário",
)
def listar_leituras(
    deviceId: Optional[str] = Query(None, description="Filtra por dispositivo"),
    userId: Optional[str] = Query(
        None, description="Filtra pelos dispositivos do usuário (ignorado se houver deviceId)"
    ),
    limit: int = Query(50, ge=1, description="Tamanho da página"),
    offset: int = Query(0, ge=0, description="Deslocamento"),
):
    return servicos.listar_leituras(
        device_id=deviceId,
        user_id=userId,
        limite=limit,
        deslocamento=offset,
    )


@app.post(
    "/readings",
    response_model=LeituraOut,
    status_code=201,
    summary="Registra uma nova leitura",
)
def criar_leitura(entrada: LeituraEntrada):
    return servicos.criar_leitura(entrada)


# ------------------- RELATÓRIOS ------------------- #


@app.get(
    "/reports",
    response_model=RelatoriosPaginadosOut,
    summary="Lista relatórios de um usuário",
)
def listar_relatorios(
    userId: Optional[str] = Query(None, description="Dono dos relatórios"),
    limit: int = Query(20, ge=1, description="Tamanho da página"),
    offset: int = Query(0, ge=0, description="Deslocamento"),
):
    return servicos.listar_relatorios(userId, limite=limit, deslocamento=offset)


@app.post(
    "/reports",
    response_model=RelatorioCriadoOut,
    status_code=201,
    summary="Cria um relatório de sessão",
)
def criar_relatorio(entrada: RelatorioEntrada):
    return servicos.criar_relatorio(entrada)


@app.get(
    "/reports/{report_id}",
    response_model=RelatorioDetalheOut,
    summary="Relatório com leituras do período e estatísticas",
)
def obter_relatorio(report_id: str):
    return servicos.obter_relatorio(report_id)


@app.delete(
    "/reports/{report_id}",
    response_model=MensagemOut,
    summary="Remove um relatório",
)
def remover_relatorio(report_id: str):
    return servicos.remover_relatorio(report_id)


# ------------------- PAINEL ------------------- #


@app.get(
    "/dashboard/stats",
    response_model=EstatisticasOut,
    summary="Totais e médias do painel de um usuário",
)
def obter_estatisticas(userId: Optional[str] = Query(None)):
    return servicos.obter_estatisticas(userId)


# ------------------- ANÁLISE DE RESPIRAÇÃO ------------------- #


@app.post(
    "/breath-analysis/sessions",
    response_model=SessaoRespiracaoOut,
    status_code=201,
    summary="Abre uma sessão de análise de respiração",
)
def criar_sessao_respiracao(entrada: SessaoRespiracaoEntrada):
    return servicos.criar_sessao_respiracao(entrada)


@app.get(
    "/breath-analysis/sessions",
    response_model=SessoesRespiracaoPaginadasOut,
    summary="Lista as sessões de análise de um usuário",
)
def listar_sessoes_respiracao(
    userId: Optional[str] = Query(None, description="Dono das sessões"),
    limit: int = Query(20, ge=1, description="Tamanho da página"),
    offset: int = Query(0, ge=0, description="Deslocamento"),
):
    return servicos.listar_sessoes_respiracao(userId, limite=limit, deslocamento=offset)


@app.get(
    "/breath-analysis/sessions/{session_id}",
    response_model=SessaoRespiracaoDetalheOut,
    summary="Sessão com sopros, métricas e estatísticas",
)
def obter_sessao_respiracao(session_id: str):
    return servicos.obter_sessao_respiracao(session_id)


@app.put(
    "/breath-analysis/sessions/{session_id}",
    response_model=SessaoRespiracaoOut,
    summary="Atualiza nome, estado ou fim de uma sessão",
)
def atualizar_sessao_respiracao(session_id: str, entrada: SessaoRespiracaoAtualizacao):
    return servicos.atualizar_sessao_respiracao(session_id, entrada)


@app.delete(
    "/breath-analysis/sessions/{session_id}",
    response_model=MensagemOut,
    summary="Remove uma sessão com seus sopros e métricas",
)
def remover_sessao_respiracao(session_id: str):
    return servicos.remover_sessao_respiracao(session_id)


@app.post(
    "/breath-analysis/process",
    response_model=ProcessamentoRespiracaoOut,
    response_model_exclude_none=True,
    summary="Grava uma leitura da sessão e detecta sopros",
)
def processar_respiracao(entrada: ProcessamentoRespiracaoEntrada):
    """
    Campos ausentes na resposta significam "ainda não há": linha de base
    instável, nenhum sopro em andamento ou nenhum sopro concluído agora.
    """
    return servicos.processar_respiracao(entrada)


def run_api():
    """
    Sobe a API com uvicorn usando host/porta do settings.
    """
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)


# Permite rodar diretamente: `python -m rovocs_backend.api.main`
if __name__ == "__main__":
    run_api()
