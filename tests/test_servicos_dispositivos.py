"""
Testes da verificação de pareamento e do upload feito pelo firmware.
"""

from datetime import timedelta

import pytest

from conftest import AGORA
from rovocs_backend.core import servicos
from rovocs_backend.core.erros import BadRequest, NotFound
from rovocs_backend.core.schemas import DadosDispositivoEntrada
from rovocs_backend.database.repositorio import DispositivoRepositorio, LeituraRepositorio
from rovocs_backend.utils.tempo import como_utc


@pytest.mark.parametrize(
    "serial, code",
    [(None, "1TXUDF"), ("ESP32-001", None), ("", "1TXUDF"), (None, None)],
)
def test_verificar_sem_parametros(serial, code):
    with pytest.raises(BadRequest) as exc:
        servicos.verificar_dispositivo(serial, code, agora=AGORA)

    assert exc.value.mensagem == "Serial and code are required"


def test_verificar_serial_desconhecido_nao_e_erro():
    resultado = servicos.verificar_dispositivo("NAO-EXISTE", "X", agora=AGORA)

    assert resultado == {"verified": False, "message": "Device not found"}


def test_verificar_leitura_recente(criar_dispositivo, criar_leitura):
    dispositivo = criar_dispositivo(serial="ESP32-123")
    criar_leitura(dispositivo, ha=timedelta(seconds=119))

    resultado = servicos.verificar_dispositivo("ESP32-123", "1TXUDF", agora=AGORA)

    assert resultado["verified"] is True
    assert resultado["message"] == "Device verified successfully"
    assert resultado["device"]["id"] == dispositivo.id
    assert resultado["device"]["serial"] == "ESP32-123"
    assert como_utc(resultado["device"]["last_seen"]) == AGORA - timedelta(seconds=119)


@pytest.mark.parametrize("segundos", [120, 121, 3600])
def test_verificar_no_limite_ou_depois_nao_verifica(criar_dispositivo, criar_leitura, segundos):
    dispositivo = criar_dispositivo(serial="ESP32-123")
    criar_leitura(dispositivo, ha=timedelta(seconds=segundos))

    resultado = servicos.verificar_dispositivo("ESP32-123", "1TXUDF", agora=AGORA)

    assert resultado["verified"] is False
    assert resultado["message"] == "Waiting for device to send data..."
    assert "last_seen" not in resultado["device"]


def test_verificar_usa_apenas_a_leitura_mais_recente(criar_dispositivo, criar_leitura):
    dispositivo = criar_dispositivo(serial="ESP32-123")
    criar_leitura(dispositivo, ha=timedelta(hours=2))
    criar_leitura(dispositivo, ha=timedelta(seconds=30))
    criar_leitura(dispositivo, ha=timedelta(hours=1))

    resultado = servicos.verificar_dispositivo("ESP32-123", "1TXUDF", agora=AGORA)

    assert resultado["verified"] is True


def test_verificar_dispositivo_sem_leituras(criar_dispositivo):
    criar_dispositivo(serial="ESP32-123")

    resultado = servicos.verificar_dispositivo("ESP32-123", "1TXUDF", agora=AGORA)

    assert resultado["verified"] is False
    assert resultado["device"]["serial"] == "ESP32-123"


# ------------------- STATUS / UPLOAD DO FIRMWARE ------------------- #


def test_status_dispositivo_pareado(criar_dispositivo):
    dispositivo = criar_dispositivo(serial="ESP32-123", user_id="user-9")

    status = servicos.status_dispositivo("ESP32-123", "1TXUDF")

    assert status["status"] == "connected"
    assert status["device_id"] == dispositivo.id
    assert status["user_id"] == "user-9"


def test_status_dispositivo_erros(criar_dispositivo):
    criar_dispositivo(serial="SEM-DONO", user_id=None)

    with pytest.raises(BadRequest):
        servicos.status_dispositivo("ESP32-123", None)
    with pytest.raises(NotFound):
        servicos.status_dispositivo("NAO-EXISTE", "X")
    with pytest.raises(BadRequest) as exc:
        servicos.status_dispositivo("SEM-DONO", "X")

    assert exc.value.mensagem == "Device not paired"


def test_receber_dados_grava_leitura_com_padroes(criar_dispositivo):
    dispositivo = criar_dispositivo(serial="ESP32-123")
    entrada = DadosDispositivoEntrada(
        deviceSerial="ESP32-123", pairingCode="1TXUDF", tvoc=0, eco2=410.5
    )

    resultado = servicos.receber_dados_dispositivo(entrada, agora=AGORA)

    assert resultado["success"] is True
    leitura = LeituraRepositorio().ultima_por_dispositivo(dispositivo.id)
    assert leitura.id == resultado["reading_id"]
    assert leitura.tvoc == 0.0
    assert leitura.eco2 == 410.5
    assert leitura.temperature == 0.0
    assert leitura.humidity == 0.0
    assert leitura.status_msg == "Data received"

    atualizado = DispositivoRepositorio().buscar_por_id(dispositivo.id)
    assert como_utc(atualizado.updated_at) == AGORA


def test_receber_dados_campos_ausentes():
    entrada = DadosDispositivoEntrada(deviceSerial="ESP32-123", tvoc=1, eco2=400)

    with pytest.raises(BadRequest) as exc:
        servicos.receber_dados_dispositivo(entrada)

    assert exc.value.mensagem == "Missing required fields"


def test_receber_dados_dispositivo_nao_cadastrado_ou_nao_pareado(criar_dispositivo):
    criar_dispositivo(serial="SEM-DONO", user_id=None)

    with pytest.raises(NotFound):
        servicos.receber_dados_dispositivo(
            DadosDispositivoEntrada(deviceSerial="X", pairingCode="Y", tvoc=1, eco2=400)
        )

    with pytest.raises(BadRequest) as exc:
        servicos.receber_dados_dispositivo(
            DadosDispositivoEntrada(deviceSerial="SEM-DONO", pairingCode="Y", tvoc=1, eco2=400)
        )

    assert exc.value.mensagem == "Device not paired with any user account"


def test_obter_dispositivo_com_ultimas_leituras(criar_dispositivo, criar_leitura):
    dispositivo = criar_dispositivo()
    for minutos in range(12):
        criar_leitura(dispositivo, ha=timedelta(minutes=minutos), tvoc=float(minutos))

    resultado = servicos.obter_dispositivo(dispositivo.id)

    assert len(resultado["readings"]) == 10
    assert [l.tvoc for l in resultado["readings"]][:3] == [0.0, 1.0, 2.0]

    with pytest.raises(NotFound):
        servicos.obter_dispositivo("nao-existe")


def test_listar_dispositivos_do_usuario(criar_dispositivo, criar_leitura):
    com_leitura = criar_dispositivo(user_id="user-1")
    criar_dispositivo(user_id="user-1")
    criar_dispositivo(user_id="user-2")
    criar_leitura(com_leitura, ha=timedelta(minutes=5))
    criar_leitura(com_leitura, ha=timedelta(minutes=1), tvoc=99.0)

    resultado = servicos.listar_dispositivos("user-1")

    assert len(resultado) == 2
    por_id = {d["id"]: d for d in resultado}
    assert [l.tvoc for l in por_id[com_leitura.id]["readings"]] == [99.0]

    with pytest.raises(BadRequest):
        servicos.listar_dispositivos(None)
