"""
repositorio.py

Camada de acesso a dados (Repository) para Dispositivo, Leitura, Relatorio
e as sessões de análise de respiração.

Objetivos:
- Isolar a lógica de persistência (consultas, paginação, tratamento de erro).
- Evitar espalhar 'criar_sessao()' pelos serviços.
- Cada método abre a própria sessão e a fecha no final; os objetos
  devolvidos já vêm com os relacionamentos necessários carregados.
"""

from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload, selectinload

from rovocs_backend.database import modelagem_banco as db
from rovocs_backend.database.modelagem_banco import (
    Dispositivo,
    EventoRespiracao,
    Leitura,
    MetricaRespiracao,
    Relatorio,
    SessaoRespiracao,
)
from rovocs_backend.utils.logger import get_logger

logger = get_logger(__name__)


def _gravar(objeto, descricao: str):
    """
    Persiste um objeto em uma transação própria.

    Em caso de erro faz rollback, loga e relança a exceção.
    """
    sessao = db.criar_sessao()
    try:
        sessao.add(objeto)
        sessao.commit()
        return objeto
    except SQLAlchemyError:
        sessao.rollback()
        logger.exception("Erro ao gravar %s.", descricao)
        raise
    finally:
        sessao.close()


class DispositivoRepositorio:
    """
    Consultas sobre dispositivos. O cadastro (provisionamento) fica fora
    deste backend; `salvar` existe para carga inicial e testes.
    """

    # ---------------- GRAVAÇÃO ---------------- #

    def salvar(self, dispositivo: Dispositivo) -> Dispositivo:
        return _gravar(dispositivo, "dispositivo")

    def registrar_atividade(self, device_id: str, instante: datetime) -> None:
        """
        Atualiza `updated_at` do dispositivo (último contato).
        """
        sessao = db.criar_sessao()
        try:
            dispositivo = sessao.get(Dispositivo, device_id)
            if dispositivo is None:
                return
            dispositivo.updated_at = instante
            sessao.commit()
        except SQLAlchemyError:
            sessao.rollback()
            logger.exception(
                "Erro ao registrar atividade do dispositivo.",
                extra={"device_id": device_id},
            )
            raise
        finally:
            sessao.close()

    # ---------------- LEITURA ---------------- #

    def buscar_por_id(self, device_id: str) -> Optional[Dispositivo]:
        sessao = db.criar_sessao()
        try:
            return sessao.get(Dispositivo, device_id)
        finally:
            sessao.close()

    def buscar_por_serial(self, serial: str) -> Optional[Dispositivo]:
        sessao = db.criar_sessao()
        try:
            stmt = select(Dispositivo).where(Dispositivo.serial == serial)
            return sessao.execute(stmt).scalars().first()
        finally:
            sessao.close()

    def listar_por_usuario(self, user_id: str) -> List[Dispositivo]:
        sessao = db.criar_sessao()
        try:
            stmt = (
                select(Dispositivo)
                .where(Dispositivo.user_id == user_id)
                .order_by(Dispositivo.created_at.asc())
            )
            return list(sessao.execute(stmt).scalars().all())
        finally:
            sessao.close()


class LeituraRepositorio:
    """
    Repositório das leituras enviadas pelos dispositivos.
    """

    # ---------------- GRAVAÇÃO ---------------- #

    def salvar(self, leitura: Leitura) -> Leitura:
        return _gravar(leitura, "leitura")

    # ---------------- LEITURA ---------------- #

    def ultima_por_dispositivo(self, device_id: str) -> Optional[Leitura]:
        """
        Leitura mais recente de um dispositivo (com o dispositivo carregado).
        """
        return next(iter(self.ultimas_por_dispositivo(device_id, limite=1)), None)

    def ultimas_por_dispositivo(self, device_id: str, limite: int = 10) -> List[Leitura]:
        sessao = db.criar_sessao()
        try:
            stmt = (
                select(Leitura)
                .options(joinedload(Leitura.dispositivo))
                .where(Leitura.device_id == device_id)
                .order_by(Leitura.recorded_at.desc())
                .limit(limite)
            )
            return list(sessao.execute(stmt).scalars().all())
        finally:
            sessao.close()

    @staticmethod
    def _filtrar(stmt, device_id: Optional[str], user_id: Optional[str]):
        # deviceId tem precedência sobre userId
        if device_id:
            return stmt.where(Leitura.device_id == device_id)
        if user_id:
            return stmt.join(Dispositivo, Leitura.device_id == Dispositivo.id).where(
                Dispositivo.user_id == user_id
            )
        return stmt

    def listar_paginado(
        self,
        device_id: Optional[str] = None,
        user_id: Optional[str] = None,
        limite: int = 50,
        deslocamento: int = 0,
    ) -> Tuple[List[Leitura], int]:
        """
        Página de leituras (mais recentes primeiro) e o total do filtro.
        """
        sessao = db.criar_sessao()
        try:
            stmt = self._filtrar(
                select(Leitura).options(joinedload(Leitura.dispositivo)),
                device_id,
                user_id,
            )
            stmt = (
                stmt.order_by(Leitura.recorded_at.desc())
                .limit(limite)
                .offset(deslocamento)
            )
            leituras = list(sessao.execute(stmt).scalars().all())

            stmt_total = self._filtrar(
                select(func.count()).select_from(Leitura), device_id, user_id
            )
            total = sessao.execute(stmt_total).scalar_one()
            return leituras, total
        finally:
            sessao.close()

    def listar_no_intervalo(
        self,
        device_id: str,
        inicio: datetime,
        fim: datetime,
        limite: int = 100,
    ) -> List[Leitura]:
        """
        Leituras de um dispositivo em [inicio, fim], mais recentes primeiro.
        """
        sessao = db.criar_sessao()
        try:
            stmt = (
                select(Leitura)
                .where(Leitura.device_id == device_id)
                .where(Leitura.recorded_at >= inicio)
                .where(Leitura.recorded_at <= fim)
                .order_by(Leitura.recorded_at.desc())
                .limit(limite)
            )
            return list(sessao.execute(stmt).scalars().all())
        finally:
            sessao.close()

    def listar_desde(self, device_id: str, desde: datetime) -> List[Leitura]:
        """
        Leituras de um dispositivo a partir de `desde`, em ordem cronológica.
        """
        sessao = db.criar_sessao()
        try:
            stmt = (
                select(Leitura)
                .where(Leitura.device_id == device_id)
                .where(Leitura.recorded_at >= desde)
                .order_by(Leitura.recorded_at.asc())
            )
            return list(sessao.execute(stmt).scalars().all())
        finally:
            sessao.close()

    @staticmethod
    def _do_usuario(stmt, user_id: str, desde: Optional[datetime], ate: Optional[datetime]):
        stmt = stmt.join(Dispositivo, Leitura.device_id == Dispositivo.id).where(
            Dispositivo.user_id == user_id
        )
        if desde is not None:
            stmt = stmt.where(Leitura.recorded_at >= desde)
        if ate is not None:
            stmt = stmt.where(Leitura.recorded_at < ate)
        return stmt

    def contar_por_usuario(
        self,
        user_id: str,
        desde: Optional[datetime] = None,
        ate: Optional[datetime] = None,
    ) -> int:
        """
        Quantidade de leituras dos dispositivos de um usuário em [desde, ate).
        Sem `desde`, conta desde o início.
        """
        sessao = db.criar_sessao()
        try:
            stmt = self._do_usuario(
                select(func.count()).select_from(Leitura), user_id, desde, ate
            )
            return sessao.execute(stmt).scalar_one()
        finally:
            sessao.close()

    def medias_por_usuario(self, user_id: str, desde: datetime) -> Dict[str, float]:
        """
        Médias de tvoc, eco2, temperature e humidity das leituras do usuário
        desde `desde` (0.0 quando não há leituras).
        """
        sessao = db.criar_sessao()
        try:
            stmt = self._do_usuario(
                select(
                    func.avg(Leitura.tvoc),
                    func.avg(Leitura.eco2),
                    func.avg(Leitura.temperature),
                    func.avg(Leitura.humidity),
                ).select_from(Leitura),
                user_id,
                desde,
                None,
            )
            linha = sessao.execute(stmt).one()
            grandezas = ("tvoc", "eco2", "temperature", "humidity")
            return {
                grandeza: float(valor or 0.0) for grandeza, valor in zip(grandezas, linha)
            }
        finally:
            sessao.close()


class RelatorioRepositorio:
    """
    Repositório dos relatórios de sessão.
    """

    # ---------------- GRAVAÇÃO ---------------- #

    def salvar(self, relatorio: Relatorio) -> Relatorio:
        return _gravar(relatorio, "relatório")

    def remover(self, relatorio_id: str) -> bool:
        """
        Remove um relatório. Retorna False se ele não existir.
        """
        sessao = db.criar_sessao()
        try:
            resultado = sessao.execute(
                delete(Relatorio).where(Relatorio.id == relatorio_id)
            )
            sessao.commit()
            return resultado.rowcount > 0
        except SQLAlchemyError:
            sessao.rollback()
            logger.exception("Erro ao remover relatório %s.", relatorio_id)
            raise
        finally:
            sessao.close()

    # ---------------- LEITURA ---------------- #

    def buscar_por_id(self, relatorio_id: str) -> Optional[Relatorio]:
        sessao = db.criar_sessao()
        try:
            stmt = (
                select(Relatorio)
                .options(joinedload(Relatorio.dispositivo))
                .where(Relatorio.id == relatorio_id)
            )
            return sessao.execute(stmt).scalars().first()
        finally:
            sessao.close()

    def listar_paginado(
        self,
        user_id: str,
        limite: int = 20,
        deslocamento: int = 0,
    ) -> Tuple[List[Relatorio], int]:
        sessao = db.criar_sessao()
        try:
            stmt = (
                select(Relatorio)
                .options(joinedload(Relatorio.dispositivo))
                .where(Relatorio.user_id == user_id)
                .order_by(Relatorio.created_at.desc())
                .limit(limite)
                .offset(deslocamento)
            )
            relatorios = list(sessao.execute(stmt).scalars().all())
            return relatorios, self._contar(sessao, user_id)
        finally:
            sessao.close()

    def contar_por_usuario(self, user_id: str) -> int:
        sessao = db.criar_sessao()
        try:
            return self._contar(sessao, user_id)
        finally:
            sessao.close()

    @staticmethod
    def _contar(sessao, user_id: str) -> int:
        return sessao.execute(
            select(func.count())
            .select_from(Relatorio)
            .where(Relatorio.user_id == user_id)
        ).scalar_one()


class SessaoRespiracaoRepositorio:
    """
    Repositório das sessões de análise de respiração, com seus sopros
    (EventoRespiracao) e métricas (MetricaRespiracao).
    """

    # ---------------- GRAVAÇÃO ---------------- #

    def salvar(self, sessao_respiracao: SessaoRespiracao) -> SessaoRespiracao:
        return _gravar(sessao_respiracao, "sessão de respiração")

    def atualizar(self, sessao_id: str, **campos) -> Optional[SessaoRespiracao]:
        """
        Atualiza os campos informados e devolve a sessão recarregada
        (None se ela não existir).
        """
        sessao = db.criar_sessao()
        try:
            registro = sessao.get(SessaoRespiracao, sessao_id)
            if registro is None:
                return None
            for campo, valor in campos.items():
                setattr(registro, campo, valor)
            sessao.commit()
        except SQLAlchemyError:
            sessao.rollback()
            logger.exception("Erro ao atualizar sessão de respiração %s.", sessao_id)
            raise
        finally:
            sessao.close()

        return self.buscar_por_id(sessao_id)

    def registrar_sopro(
        self,
        evento: EventoRespiracao,
        metricas: List[MetricaRespiracao],
    ) -> Tuple[EventoRespiracao, List[MetricaRespiracao]]:
        """
        Grava um sopro e suas métricas na mesma transação.
        """
        sessao = db.criar_sessao()
        try:
            sessao.add(evento)
            sessao.flush()
            for metrica in metricas:
                metrica.event_id = evento.id
            sessao.add_all(metricas)
            sessao.commit()
            return evento, metricas
        except SQLAlchemyError:
            sessao.rollback()
            logger.exception(
                "Erro ao gravar sopro da sessão %s.", evento.session_id
            )
            raise
        finally:
            sessao.close()

    def remover(self, sessao_id: str) -> bool:
        """
        Remove a sessão com seus sopros e métricas. Retorna False se ela
        não existir.
        """
        sessao = db.criar_sessao()
        try:
            sessao.execute(
                delete(MetricaRespiracao).where(MetricaRespiracao.session_id == sessao_id)
            )
            sessao.execute(
                delete(EventoRespiracao).where(EventoRespiracao.session_id == sessao_id)
            )
            resultado = sessao.execute(
                delete(SessaoRespiracao).where(SessaoRespiracao.id == sessao_id)
            )
            sessao.commit()
            return resultado.rowcount > 0
        except SQLAlchemyError:
            sessao.rollback()
            logger.exception("Erro ao remover sessão de respiração %s.", sessao_id)
            raise
        finally:
            sessao.close()

    # ---------------- LEITURA ---------------- #

    def buscar_por_id(self, sessao_id: str) -> Optional[SessaoRespiracao]:
        """
        Sessão com dispositivo, sopros (cada um com suas métricas) e métricas.
        """
        sessao = db.criar_sessao()
        try:
            stmt = (
                select(SessaoRespiracao)
                .options(
                    joinedload(SessaoRespiracao.dispositivo),
                    selectinload(SessaoRespiracao.eventos).selectinload(
                        EventoRespiracao.metricas
                    ),
                    selectinload(SessaoRespiracao.metricas),
                )
                .where(SessaoRespiracao.id == sessao_id)
            )
            return sessao.execute(stmt).scalars().first()
        finally:
            sessao.close()

    def listar_paginado(
        self,
        user_id: str,
        limite: int = 20,
        deslocamento: int = 0,
    ) -> Tuple[List[SessaoRespiracao], int]:
        sessao = db.criar_sessao()
        try:
            stmt = (
                select(SessaoRespiracao)
                .options(
                    joinedload(SessaoRespiracao.dispositivo),
                    selectinload(SessaoRespiracao.eventos),
                    selectinload(SessaoRespiracao.metricas),
                )
                .where(SessaoRespiracao.user_id == user_id)
                .order_by(SessaoRespiracao.start_time.desc())
                .limit(limite)
                .offset(deslocamento)
            )
            sessoes = list(sessao.execute(stmt).scalars().all())
            total = sessao.execute(
                select(func.count())
                .select_from(SessaoRespiracao)
                .where(SessaoRespiracao.user_id == user_id)
            ).scalar_one()
            return sessoes, total
        finally:
            sessao.close()

    def contar_por_usuario(self, user_id: str, desde: Optional[datetime] = None) -> int:
        """
        Sessões do usuário; com `desde`, só as iniciadas a partir dele.
        """
        sessao = db.criar_sessao()
        try:
            stmt = (
                select(func.count())
                .select_from(SessaoRespiracao)
                .where(SessaoRespiracao.user_id == user_id)
            )
            if desde is not None:
                stmt = stmt.where(SessaoRespiracao.start_time >= desde)
            return sessao.execute(stmt).scalar_one()
        finally:
            sessao.close()
