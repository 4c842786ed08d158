#!/usr/bin/env python3
"""
Autopecas - Backend de busca e identidade de produtos
=====================================================

Entry point da aplicação.
Execute com: python Autopecas.py

Arquitetura:
    autopecas/
    ├── config/         # Configuração (env / settings.json), logging, exceções
    ├── domain/         # Modelos de dados (TypedDicts)
    ├── infrastructure/ # KV (Redis/memória), catálogo PostgREST, cliente SIGE
    ├── services/       # Busca fuzzy, reconciliação, saldo, mapeamento, preço
    ├── presentation/   # Rotas e schemas
    └── server/         # App FastAPI
"""

import os
import sys

import uvicorn
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def main():
    """
    Configura e inicia o servidor Uvicorn.

    Host/porta vêm de `settings.server`; o reload pode ser desabilitado com
    AUTOPECAS_RELOAD=0.
    """
    sys.path.append(os.path.dirname(os.path.abspath(__file__)))

    from autopecas.config.settings import settings

    project_root = os.path.dirname(os.path.abspath(__file__))
    package_dir = os.path.join(project_root, "autopecas")
    reload_enabled = os.getenv("AUTOPECAS_RELOAD", "1").lower() not in {"0", "false", "no"}

    print(f"Starting Autopecas Server on http://{settings.server.host}:{settings.server.port}")

    uvicorn.run(
        "autopecas.server.app:app",
        host=settings.server.host,
        port=settings.server.port,
        reload=reload_enabled,
        reload_dirs=[package_dir],
        reload_excludes=[".venv/*", ".git/*", "__pycache__/*"],
    )


if __name__ == "__main__":
    main()
