"""
conftest.py

Configuração de testes do rovocs-backend.

Aqui:
- Criamos um banco SQLite em memória para os testes (StaticPool, para
  que todas as sessões, inclusive as abertas nas threads do TestClient,
  enxerguem o mesmo banco).
- Reconfiguramos o engine e o SessionLocal do módulo modelagem_banco
  para usar esse banco de teste.
- Recriamos as tabelas antes de cada teste, isolando os cenários.
"""

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from rovocs_backend.database import modelagem_banco as db
from rovocs_backend.database.modelagem_banco import Dispositivo, Leitura
from rovocs_backend.database.repositorio import DispositivoRepositorio, LeituraRepositorio

AGORA = datetime(2025, 9, 28, 15, 30, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session", autouse=True)
def setup_test_db():
    """
    Cria um engine SQLite em memória e faz o módulo modelagem_banco
    apontar para ele durante toda a sessão de testes.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    db.engine = engine
    db.SessionLocal = sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
    )

    yield engine

    engine.dispose()


@pytest.fixture(autouse=True)
def banco_limpo(setup_test_db):
    """
    Cada teste começa com as tabelas vazias.
    """
    db.Base.metadata.drop_all(setup_test_db)
    db.Base.metadata.create_all(setup_test_db)
    yield


@pytest.fixture
def client():
    # Sem `with`: o lifespan (create_all/dispose do engine real) não roda.
    from rovocs_backend.api.main import app

    return TestClient(app)


@pytest.fixture
def criar_dispositivo():
    """
    Factory de dispositivos persistidos.
    """
    repositorio = DispositivoRepositorio()
    contador = {"n": 0}

    def _criar(serial=None, name="Sensor da sala", user_id="user-1", **extras):
        contador["n"] += 1
        return repositorio.salvar(
            Dispositivo(
                serial=serial or f"ESP32-{contador['n']:03d}",
                name=name,
                user_id=user_id,
                **extras,
            )
        )

    return _criar


@pytest.fixture
def criar_leitura():
    """
    Factory de leituras com `recorded_at` controlado.

    `ha` é quanto tempo antes de AGORA a leitura foi gravada.
    """
    repositorio = LeituraRepositorio()

    def _criar(dispositivo, ha=timedelta(0), **valores):
        dados = {"tvoc": 50.0, "eco2": 600.0, "temperature": 22.0, "humidity": 50.0}
        dados.update(valores)
        return repositorio.salvar(
            Leitura(device_id=dispositivo.id, recorded_at=AGORA - ha, **dados)
        )

    return _criar
