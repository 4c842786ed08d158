"""
Constantes centralizadas do backend de autopeças.
Todos os magic numbers e strings hardcoded devem ser definidos aqui.
"""


class ServerConfig:
    """Configurações do servidor."""

    VERSION = "1.0"
    VERSION_NAME = "Catalogo Autopecas"


class PerformanceConfig:
    """Configurações de performance."""

    GZIP_MIN_SIZE = 1000  # Tamanho mínimo para compressão (bytes)
    GZIP_COMPRESSION_LEVEL = 1  # Respostas de busca são pequenas; nível baixo basta


class KvKeys:
    """Chaves e prefixos usados no key-value store."""

    ERP_CONFIG = "sige_api_config"
    ERP_TOKEN = "sige_api_token"

    BALANCE_PREFIX = "sige_balance_"
    PRICE_PREFIX = "sige_price_"
    MAPPING_PREFIX = "sige_map_"

    PRICE_CONFIG = "price_config"
    CUSTOM_PRICE_PREFIX = "price_custom_"
    LEGACY_PRICE_PREFIX = "product_price_"  # Formato antigo, ainda lido

    STOCK_SUMMARY = "stock_summary_cache"

    CATEGORY_TREE = "category_tree"
    PRODUCT_META_PREFIX = "produto_meta:"
    SKU_ATTRIBUTES = "sku_atributos"


class SearchConfig:
    """Configurações de busca."""

    MIN_QUERY_LENGTH = 2  # Tamanho mínimo de query
    MIN_TOKEN_LENGTH = 2  # Tokens menores são descartados
    MAX_QUERY_TOKENS = 4  # Grupos AND no filtro multi-token
    MAX_PATTERNS_PER_TOKEN = 15  # Limita o tamanho da URL do PostgREST
    AUTOCOMPLETE_SKU_PATTERNS = 3  # Padrões de SKU por token no autocomplete


class ScoreWeights:
    """Pesos do ranking fuzzy (aditivos)."""

    EXACT = 1000
    TITLE_PREFIX = 200
    SKU_PREFIX = 300
    TITLE_CONTAINS = 150
    SKU_CONTAINS = 200

    # Hits por token: exato 3, prefixo 2, substring 1 (multiplicados)
    TOKEN_EXACT_HITS = 3
    TOKEN_PREFIX_HITS = 2
    TOKEN_SUBSTRING_HITS = 1
    TOKEN_HIT_MULTIPLIER = 30

    PHONETIC_CONTAINS = 80
    PHONETIC_TOKEN = 40

    EDIT_DISTANCE = 25
    PHONETIC_EDIT_DISTANCE = 15
    EDIT_DISTANCE_RATIO = 0.35
    EDIT_LENGTH_WINDOW = 3  # Só compara tokens com tamanho parecido
    EDIT_MIN_TOKEN_LENGTH = 3

    SKU_COMPACT_CONTAINS = 100
    ALL_TOKENS_PRESENT = 300

    SIMILAR_THRESHOLD = 80  # score >= → matchType "similar"


class ReconcileConfig:
    """Limites das respostas de reconciliação de SKUs."""

    MAX_UNMATCHED_RESPONSE = 200
    MAX_UNMATCHED_UPLOAD = 50
    PREVIEW_SIZE = 5


class ErpConfig:
    """Parâmetros das chamadas ao SIGE."""

    SEARCH_LIMIT = 5
    DESCRIPTION_SEARCH_LIMIT = 3
    PRICE_SEARCH_LIMIT = 1
    PRICE_LIST_LIMIT = 50
    FIRST_OFFSET = 1  # Paginação do SIGE começa em 1
    SYNC_MAX_RESULTS = 200
    DEFAULT_PRICE_TIER = "v2"
    PRICE_TIERS = ("v1", "v2", "v3")


class Messages:
    """Mensagens do sistema."""

    SERVER_STARTED = "🚀 Autopecas API v{version} ({name}) iniciada!"
    SERVER_STOPPED = "👋 Servidor encerrado."

    CATALOG_NOT_CONFIGURED = (
        "Configuração do servidor incompleta: catalog.base_url ou catalog.api_key não definidos."
    )
    ERP_NOT_CONFIGURED = "SIGE nao configurado."
    ERP_NOT_CONNECTED = "SIGE nao conectado."
    ERP_CONFIG_MISSING = (
        "Configuracao SIGE nao encontrada. Salve a URL base, email e senha primeiro."
    )
    ERP_CONFIG_INCOMPLETE = "Configuracao incompleta. Preencha URL base, email e senha."
    ERP_REFRESH_UNAVAILABLE = "Refresh token nao disponivel. Faca login novamente."
    ERP_TOKEN_MISSING = "Nenhum token encontrado. Faca login primeiro."
    ERP_INVALID_JSON = "Resposta invalida da API SIGE (nao e JSON)."

    SKUS_REQUIRED = "Campo 'skus' deve ser um array de strings nao vazio."
    CSV_EMPTY = "O arquivo CSV está vazio."
    CSV_WITHOUT_SKU = "Nenhum SKU válido encontrado no CSV. Verifique se existe uma coluna 'SKU'."
