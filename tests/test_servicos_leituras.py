"""
Testes das regras de leituras: última leitura, listagem paginada,
criação e contadores do dia.
"""

from datetime import timedelta

import pytest

from conftest import AGORA
from rovocs_backend.core import servicos
from rovocs_backend.core.erros import BadRequest, NotFound
from rovocs_backend.core.schemas import LeituraEntrada
from rovocs_backend.utils.tempo import agora_utc, como_utc

# ------------------- ÚLTIMA LEITURA ------------------- #


def test_ultima_leitura_sem_device_id():
    with pytest.raises(BadRequest) as exc:
        servicos.obter_ultima_leitura(None, agora=AGORA)

    assert exc.value.mensagem == "Device ID is required"


def test_ultima_leitura_dispositivo_sem_leituras(criar_dispositivo):
    dispositivo = criar_dispositivo()

    with pytest.raises(NotFound):
        servicos.obter_ultima_leitura(dispositivo.id, agora=AGORA)

    # Dispositivo inexistente cai no mesmo caso
    with pytest.raises(NotFound) as exc:
        servicos.obter_ultima_leitura("nao-existe", agora=AGORA)

    assert exc.value.mensagem == "No readings found for this device"


def test_ultima_leitura_recente_e_segundos_arredondados(criar_dispositivo, criar_leitura):
    dispositivo = criar_dispositivo()
    criar_leitura(dispositivo, ha=timedelta(minutes=10))
    recente = criar_leitura(dispositivo, ha=timedelta(seconds=90, milliseconds=700))

    resultado = servicos.obter_ultima_leitura(dispositivo.id, agora=AGORA)

    assert resultado["reading"].id == recente.id
    assert resultado["reading"].dispositivo.serial == dispositivo.serial
    assert resultado["is_recent"] is True
    assert resultado["time_since_reading"] == 90


@pytest.mark.parametrize(
    "idade, esperado",
    [
        (timedelta(seconds=299), True),
        (timedelta(seconds=300), False),
        (timedelta(seconds=301), False),
    ],
)
def test_ultima_leitura_limite_de_cinco_minutos(criar_dispositivo, criar_leitura, idade, esperado):
    dispositivo = criar_dispositivo()
    criar_leitura(dispositivo, ha=idade)

    resultado = servicos.obter_ultima_leitura(dispositivo.id, agora=AGORA)

    assert resultado["is_recent"] is esperado
    assert resultado["time_since_reading"] == int(idade.total_seconds())


# ------------------- LISTAGEM ------------------- #


@pytest.mark.parametrize(
    "limite, deslocamento, esperado_qtd, esperado_mais",
    [
        (50, 0, 7, False),
        (3, 0, 3, True),
        (3, 3, 3, True),
        (3, 4, 3, False),
        (3, 6, 1, False),
        (5, 10, 0, False),
    ],
)
def test_listar_paginacao(
    criar_dispositivo, criar_leitura, limite, deslocamento, esperado_qtd, esperado_mais
):
    dispositivo = criar_dispositivo()
    for minutos in range(7):
        criar_leitura(dispositivo, ha=timedelta(minutes=minutos))

    resultado = servicos.listar_leituras(
        device_id=dispositivo.id, limite=limite, deslocamento=deslocamento
    )

    paginacao = resultado["pagination"]
    assert paginacao["total"] == 7
    assert paginacao["limit"] == limite
    assert paginacao["offset"] == deslocamento
    assert paginacao["has_more"] is esperado_mais
    assert paginacao["has_more"] == (deslocamento + limite < paginacao["total"])
    assert len(resultado["readings"]) == esperado_qtd
    assert len(resultado["readings"]) <= limite


def test_listar_mais_recentes_primeiro_com_dispositivo(criar_dispositivo, criar_leitura):
    dispositivo = criar_dispositivo(name="Quarto")
    criar_leitura(dispositivo, ha=timedelta(minutes=3), tvoc=3.0)
    criar_leitura(dispositivo, ha=timedelta(minutes=1), tvoc=1.0)
    criar_leitura(dispositivo, ha=timedelta(minutes=2), tvoc=2.0)

    leituras = servicos.listar_leituras(device_id=dispositivo.id)["readings"]

    assert [l.tvoc for l in leituras] == [1.0, 2.0, 3.0]
    assert all(l.dispositivo.name == "Quarto" for l in leituras)


def test_listar_filtros(criar_dispositivo, criar_leitura):
    do_user1 = criar_dispositivo(user_id="user-1")
    outro_do_user1 = criar_dispositivo(user_id="user-1")
    do_user2 = criar_dispositivo(user_id="user-2")
    criar_leitura(do_user1)
    criar_leitura(outro_do_user1)
    criar_leitura(outro_do_user1)
    criar_leitura(do_user2)

    por_usuario = servicos.listar_leituras(user_id="user-1")
    assert por_usuario["pagination"]["total"] == 3

    # deviceId tem precedência sobre userId
    por_dispositivo = servicos.listar_leituras(device_id=do_user2.id, user_id="user-1")
    assert por_dispositivo["pagination"]["total"] == 1
    assert por_dispositivo["readings"][0].device_id == do_user2.id

    sem_filtro = servicos.listar_leituras()
    assert sem_filtro["pagination"]["total"] == 4


# ------------------- CRIAÇÃO ------------------- #


def test_criar_leitura(criar_dispositivo):
    dispositivo = criar_dispositivo()
    antes = agora_utc()

    leitura = servicos.criar_leitura(
        LeituraEntrada(
            deviceId=dispositivo.id, tvoc=1.2, eco2=400, temperature=22.5, humidity=45
        )
    )

    assert leitura.id
    assert leitura.device_id == dispositivo.id
    assert (leitura.tvoc, leitura.eco2, leitura.temperature, leitura.humidity) == (
        1.2,
        400.0,
        22.5,
        45.0,
    )
    assert isinstance(leitura.eco2, float)
    assert leitura.status_msg is None
    assert como_utc(leitura.recorded_at) >= antes


def test_criar_leitura_aceita_zeros(criar_dispositivo):
    dispositivo = criar_dispositivo()

    leitura = servicos.criar_leitura(
        LeituraEntrada(
            deviceId=dispositivo.id,
            tvoc=0,
            eco2=0,
            temperature=0,
            humidity=0,
            statusMsg="calibrando",
        )
    )

    assert leitura.tvoc == 0.0
    assert leitura.status_msg == "calibrando"


@pytest.mark.parametrize(
    "faltando", ["deviceId", "tvoc", "eco2", "temperature", "humidity"]
)
def test_criar_leitura_campo_obrigatorio_ausente(criar_dispositivo, faltando):
    dispositivo = criar_dispositivo()
    dados = {
        "deviceId": dispositivo.id,
        "tvoc": 1.2,
        "eco2": 400,
        "temperature": 22.5,
        "humidity": 45,
    }
    dados.pop(faltando)

    with pytest.raises(BadRequest) as exc:
        servicos.criar_leitura(LeituraEntrada(**dados))

    assert "required" in exc.value.mensagem


def test_criar_leitura_dispositivo_inexistente_e_404():
    with pytest.raises(NotFound) as exc:
        servicos.criar_leitura(
            LeituraEntrada(deviceId="nao-existe", tvoc=1, eco2=400, temperature=20, humidity=40)
        )

    assert exc.value.mensagem == "Device not found"


# ------------------- CONTADORES DO DIA ------------------- #


def test_contar_leituras_hoje(criar_dispositivo, criar_leitura):
    # AGORA = 2025-09-28 15:30 UTC
    dispositivo = criar_dispositivo(user_id="user-1")
    alheio = criar_dispositivo(user_id="user-2")

    criar_leitura(dispositivo, ha=timedelta(hours=1))  # hoje
    criar_leitura(dispositivo, ha=timedelta(hours=15))  # hoje, 00:30
    criar_leitura(dispositivo, ha=timedelta(hours=16))  # ontem, 23:30 (24h)
    criar_leitura(dispositivo, ha=timedelta(hours=30))  # ontem, 09:30
    criar_leitura(dispositivo, ha=timedelta(hours=50))  # anteontem
    criar_leitura(alheio, ha=timedelta(hours=1))

    resultado = servicos.contar_leituras_hoje("user-1", agora=AGORA)

    assert resultado["today"] == 2
    assert resultado["last24_hours"] == 3
    assert resultado["yesterday"] == 2
    assert resultado["change"] == 0.0


def test_contar_leituras_variacao(criar_dispositivo, criar_leitura):
    dispositivo = criar_dispositivo(user_id="user-1")
    for horas in (1, 2, 3):
        criar_leitura(dispositivo, ha=timedelta(hours=horas))
    criar_leitura(dispositivo, ha=timedelta(hours=20))

    resultado = servicos.contar_leituras_hoje("user-1", agora=AGORA)

    assert resultado["today"] == 3
    assert resultado["yesterday"] == 1
    assert resultado["change"] == 200.0


def test_contar_leituras_sem_ontem_e_sem_usuario():
    assert servicos.contar_leituras_hoje("user-1", agora=AGORA)["change"] == 0

    with pytest.raises(BadRequest):
        servicos.contar_leituras_hoje(None)
