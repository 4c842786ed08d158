"""
Exceções customizadas do backend de autopeças.
Hierarquia de exceções para tratamento de erros consistente.

Cada exceção define:
- message: Mensagem legível para o usuário
- code: Código de erro para programático (ex: "VALIDATION_ERROR")
- status_code: Código HTTP padrão para a exceção
"""


class AutopecasError(Exception):
    """Exceção base. Todas as exceções customizadas herdam desta."""

    status_code: int = 500  # Default para erros internos

    def __init__(self, message: str, code: str = None):
        self.message = message
        self.code = code or "AUTOPECAS_ERROR"
        super().__init__(self.message)


class ConfigurationError(AutopecasError):
    """Erro de configuração (URL do catálogo ausente, chave inválida, etc.)."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message, "CONFIG_ERROR")


class InvalidQueryError(AutopecasError):
    """Query de busca inválida."""

    status_code = 400

    def __init__(self, query: str, reason: str = "Query inválida"):
        super().__init__(f"{reason}: '{query}'", "INVALID_QUERY")
        self.query = query


class ValidationError(AutopecasError):
    """Erro de validação de input (parâmetros inválidos ou faltantes)."""

    status_code = 400

    def __init__(self, message: str, field: str = None):
        super().__init__(message, "VALIDATION_ERROR")
        self.field = field


class ServiceError(AutopecasError):
    """Erro em operação de serviço (falha de processamento)."""

    status_code = 500

    def __init__(self, message: str, service: str = None):
        super().__init__(message, "SERVICE_ERROR")
        self.service = service


class UpstreamError(AutopecasError):
    """Sistema externo (catálogo ou ERP) respondeu com erro ou ficou inacessível."""

    status_code = 502  # Bad Gateway

    def __init__(self, message: str, service: str = None, upstream_status: int = None):
        super().__init__(message, "UPSTREAM_ERROR")
        self.service = service
        self.upstream_status = upstream_status


class ErpUnavailableError(AutopecasError):
    """ERP SIGE indisponível para uso (sem configuração ou sem sessão)."""

    status_code = 503

    def __init__(self, message: str, code: str = "ERP_UNAVAILABLE"):
        super().__init__(message, code)
        self.service = "sige"


class ErpNotConfiguredError(ErpUnavailableError):
    """Credenciais do SIGE ainda não foram salvas."""

    status_code = 400

    def __init__(self, message: str = "SIGE nao configurado."):
        super().__init__(message, "ERP_NOT_CONFIGURED")


class ErpNotConnectedError(ErpUnavailableError):
    """Não há token de sessão do SIGE (connect nunca foi feito ou foi desconectado)."""

    status_code = 400

    def __init__(self, message: str = "SIGE nao conectado."):
        super().__init__(message, "ERP_NOT_CONNECTED")
