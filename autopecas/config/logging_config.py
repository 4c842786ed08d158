"""
Configuração de logging estruturado do backend de autopeças.
Fornece loggers configurados para cada módulo.
"""

import logging
import sys
from typing import Optional


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    Configura o logging global da aplicação.

    Args:
        level: Nível de logging (default: INFO)
        log_file: Caminho opcional para arquivo de log
    """
    formatter = logging.Formatter(
        fmt='%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    if sys.platform == "win32":
        # Títulos de produto chegam com acentos; evita UnicodeEncodeError no console
        sys.stdout.reconfigure(encoding='utf-8')

    root_logger = logging.getLogger('autopecas')
    root_logger.setLevel(level)

    # Evita handlers duplicados quando o app é recarregado (uvicorn --reload / TestClient)
    if not any(getattr(h, "_autopecas_console", False) for h in root_logger.handlers):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        console_handler._autopecas_console = True  # type: ignore[attr-defined]
        root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Retorna logger para um módulo específico.

    Args:
        name: Nome do módulo (ex: 'erp', 'catalog')

    Returns:
        Logger configurado com prefixo 'autopecas.'

    Example:
        >>> logger = get_logger('erp')
        >>> logger.info("Token renovado")
        # Output: 2026-01-09 17:30:00 | INFO     | autopecas.erp | Token renovado
    """
    return logging.getLogger(f'autopecas.{name}')


# Loggers pré-configurados para importação direta
config_logger = get_logger('config')
service_logger = get_logger('service')
erp_logger = get_logger('erp')
catalog_logger = get_logger('catalog')
cache_logger = get_logger('cache')
server_logger = get_logger('server')
