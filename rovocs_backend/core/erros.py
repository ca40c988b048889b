"""
erros.py

Exceções de domínio levantadas pelos serviços.

A API converte cada uma em `{"error": mensagem}` com o status HTTP
correspondente; qualquer outra exceção vira um 500 opaco.
"""


class ErroAPI(Exception):
    status_code = 500

    def __init__(self, mensagem: str):
        super().__init__(mensagem)
        self.mensagem = mensagem


class BadRequest(ErroAPI):
    """Entrada obrigatória ausente ou inválida."""

    status_code = 400


class NotFound(ErroAPI):
    """Entidade referenciada (dispositivo, leitura, relatório) inexistente."""

    status_code = 404
