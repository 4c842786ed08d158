# Autopecas Source Package
"""
Estrutura modular do backend do catálogo de autopeças.

Módulos:
- config: Configuração (settings.json / env), logging e exceções
- domain: Modelos de dados (TypedDicts / dataclasses)
- infrastructure: Clientes externos (KV/Redis, catálogo PostgREST, ERP SIGE)
- services: Lógica de negócio (busca fuzzy, reconciliação, resolver ERP)
- presentation: Rotas HTTP e schemas
- server: App FastAPI, dependências e handlers de erro
"""
