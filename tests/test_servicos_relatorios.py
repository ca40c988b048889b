"""
Testes dos relatórios de sessão.
"""

from datetime import timedelta

import pytest

from conftest import AGORA
from rovocs_backend.core import servicos
from rovocs_backend.core.erros import BadRequest, NotFound
from rovocs_backend.core.schemas import RelatorioEntrada


def _entrada(**campos) -> RelatorioEntrada:
    dados = {
        "from": (AGORA - timedelta(hours=1)).isoformat(),
        "to": AGORA.isoformat(),
    }
    dados.update(campos)
    return RelatorioEntrada.model_validate(dados)


def test_criar_relatorio_usa_dono_do_dispositivo(criar_dispositivo):
    dispositivo = criar_dispositivo(user_id="user-7")

    relatorio = servicos.criar_relatorio(
        _entrada(deviceId=dispositivo.id, readings=[{}, {}, {}]), agora=AGORA
    )

    assert relatorio["user_id"] == "user-7"
    assert relatorio["device_id"] == dispositivo.id
    assert relatorio["readings_count"] == 3
    assert relatorio["name"] == "Session Report - 9/28/2025"
    assert relatorio["file_url"] == (
        f"/reports/{int(AGORA.timestamp() * 1000)}-{dispositivo.id}.json"
    )


def test_criar_relatorio_user_id_explicito_e_nome(criar_dispositivo):
    dispositivo = criar_dispositivo(user_id="dono")

    relatorio = servicos.criar_relatorio(
        _entrada(deviceId=dispositivo.id, userId="outro", name="Treino"), agora=AGORA
    )

    assert relatorio["user_id"] == "outro"
    assert relatorio["name"] == "Treino"
    assert relatorio["readings_count"] == 0


def test_criar_relatorio_sem_dono_e_400(criar_dispositivo):
    dispositivo = criar_dispositivo(user_id=None)

    with pytest.raises(BadRequest) as exc:
        servicos.criar_relatorio(_entrada(deviceId=dispositivo.id), agora=AGORA)

    assert exc.value.mensagem == "User ID is required"


def test_criar_relatorio_dispositivo_inexistente():
    with pytest.raises(NotFound):
        servicos.criar_relatorio(_entrada(deviceId="nao-existe"), agora=AGORA)


@pytest.mark.parametrize("faltando", ["deviceId", "from", "to"])
def test_criar_relatorio_campos_obrigatorios(criar_dispositivo, faltando):
    dispositivo = criar_dispositivo()
    dados = {
        "deviceId": dispositivo.id,
        "from": (AGORA - timedelta(hours=1)).isoformat(),
        "to": AGORA.isoformat(),
    }
    dados.pop(faltando)

    with pytest.raises(BadRequest) as exc:
        servicos.criar_relatorio(RelatorioEntrada.model_validate(dados), agora=AGORA)

    assert exc.value.mensagem == "deviceId, from, and to are required"


@pytest.mark.parametrize("vazio", ["from", "to"])
def test_criar_relatorio_data_vazia_conta_como_ausente(criar_dispositivo, vazio):
    dispositivo = criar_dispositivo()

    entrada = _entrada(deviceId=dispositivo.id, **{vazio: ""})

    with pytest.raises(BadRequest) as exc:
        servicos.criar_relatorio(entrada, agora=AGORA)

    assert exc.value.mensagem == "deviceId, from, and to are required"


def test_listar_relatorios_paginados(criar_dispositivo):
    dispositivo = criar_dispositivo(user_id="user-1", name="Sala")
    for minutos in range(5):
        servicos.criar_relatorio(
            _entrada(deviceId=dispositivo.id), agora=AGORA - timedelta(minutes=minutos)
        )
    servicos.criar_relatorio(_entrada(deviceId=dispositivo.id, userId="user-2"), agora=AGORA)

    resultado = servicos.listar_relatorios("user-1", limite=2, deslocamento=0)

    assert resultado["pagination"] == {
        "total": 5,
        "limit": 2,
        "offset": 0,
        "has_more": True,
    }
    relatorios = resultado["reports"]
    assert len(relatorios) == 2
    assert relatorios[0].created_at > relatorios[1].created_at
    assert relatorios[0].dispositivo.name == "Sala"

    ultima_pagina = servicos.listar_relatorios("user-1", limite=2, deslocamento=4)
    assert len(ultima_pagina["reports"]) == 1
    assert ultima_pagina["pagination"]["has_more"] is False


def test_listar_relatorios_sem_usuario():
    with pytest.raises(BadRequest):
        servicos.listar_relatorios(None)


def test_obter_relatorio_com_analise(criar_dispositivo, criar_leitura):
    dispositivo = criar_dispositivo()
    criar_leitura(dispositivo, ha=timedelta(minutes=10), tvoc=10.0, eco2=400.0, temperature=20.0)
    criar_leitura(dispositivo, ha=timedelta(minutes=20), tvoc=30.0, eco2=800.0, temperature=24.0)
    # fora da janela
    criar_leitura(dispositivo, ha=timedelta(hours=3), tvoc=999.0)

    criado = servicos.criar_relatorio(_entrada(deviceId=dispositivo.id), agora=AGORA)

    detalhe = servicos.obter_relatorio(criado["id"])

    assert detalhe["dispositivo"].id == dispositivo.id
    assert [l.tvoc for l in detalhe["readings"]] == [10.0, 30.0]
    analise = detalhe["analytics"]
    assert analise["totalReadings"] == 2
    assert analise["avgTVOC"] == 20.0
    assert analise["avgECO2"] == 600.0
    assert analise["avgTemperature"] == 22.0
    assert analise["maxTVOC"] == 30.0
    assert analise["minTVOC"] == 10.0
    assert analise["maxECO2"] == 800.0
    assert analise["minECO2"] == 400.0


def test_calcular_analise_sem_leituras():
    analise = servicos.calcular_analise([])

    assert analise["totalReadings"] == 0
    assert all(valor == 0 for valor in analise.values())


def test_obter_e_remover_relatorio_inexistente():
    with pytest.raises(NotFound):
        servicos.obter_relatorio("nao-existe")
    with pytest.raises(NotFound):
        servicos.remover_relatorio("nao-existe")


def test_remover_relatorio(criar_dispositivo):
    dispositivo = criar_dispositivo()
    criado = servicos.criar_relatorio(_entrada(deviceId=dispositivo.id), agora=AGORA)

    resposta = servicos.remover_relatorio(criado["id"])

    assert resposta == {"message": "Report deleted successfully"}
    with pytest.raises(NotFound):
        servicos.obter_relatorio(criado["id"])
