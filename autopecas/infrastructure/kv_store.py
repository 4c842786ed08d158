"""
Key-value store compartilhado (credenciais do ERP, caches de saldo/preço,
mapeamentos SKU → SIGE, árvore de categorias, atributos).

Duas implementações com a mesma interface assíncrona:
- RedisKvStore: produção (redis.asyncio + orjson)
- MemoryKvStore: desenvolvimento local e testes
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import orjson
import redis.asyncio as aioredis

from ..config.exceptions import ServiceError
from ..config.logging_config import cache_logger as logger
from ..config.settings import settings


@dataclass
class RedisKvStore:
    """
    Store principal: credenciais, sessão, mapeamentos e preços só existem aqui.

    Sem Redis, leituras retornam "ausente" e escritas levantam
    ServiceError(service="kv").
    A conexão é refeita sob demanda, no máximo uma tentativa a cada
    `reconnect_interval` segundos.
    """

    url: str
    key_prefix: str = ""
    reconnect_interval: float = 5.0
    _client: Any = field(default=None, repr=False)
    _next_attempt: float = field(default=0.0, repr=False)

    async def connect(self) -> None:
        if self._client is not None:
            return
        self._next_attempt = time.monotonic() + self.reconnect_interval
        client = aioredis.from_url(
            self.url,
            decode_responses=False,
            socket_connect_timeout=2,
            socket_timeout=1,
            health_check_interval=30,
        )
        try:
            await client.ping()
        except Exception as exc:
            logger.warning("Redis connect failed: %s", exc)
            try:
                await client.aclose()
            except Exception as close_exc:
                logger.debug("Redis close after failed connect: %s", close_exc)
            return
        self._client = client
        logger.info("Redis connected")

    async def close(self) -> None:
        if self._client is None:
            return
        try:
            await self._client.aclose()
        except Exception as exc:
            logger.warning("Redis close failed: %s", exc)
        finally:
            self._client = None

    @property
    def available(self) -> bool:
        return self._client is not None

    async def _ensure_client(self) -> Any:
        if self._client is None and time.monotonic() >= self._next_attempt:
            await self.connect()
        return self._client

    async def _writable_client(self, key: str) -> Any:
        client = await self._ensure_client()
        if client is None:
            logger.error("Redis unavailable: write to %s rejected", key)
            raise ServiceError("Armazenamento indisponivel (Redis).", service="kv")
        return client

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def _strip(self, raw_key: Any) -> str:
        key = raw_key.decode("utf-8") if isinstance(raw_key, bytes) else str(raw_key)
        return key[len(self.key_prefix):] if key.startswith(self.key_prefix) else key

    async def get(self, key: str) -> Any:
        client = await self._ensure_client()
        if client is None:
            return None
        try:
            payload = await client.get(self._key(key))
            if payload is None:
                return None
            return orjson.loads(payload)
        except Exception as exc:
            logger.debug("Redis get failed (%s): %s", key, exc)
            return None

    async def set(self, key: str, value: Any) -> None:
        client = await self._writable_client(key)
        try:
            await client.set(self._key(key), orjson.dumps(value))
        except Exception as exc:
            logger.error("Redis set failed (%s): %s", key, exc)
            raise ServiceError(f"Falha ao gravar '{key}' no Redis: {exc}", service="kv") from exc

    async def delete(self, key: str) -> None:
        await self.delete_many([key])

    async def delete_many(self, keys: Iterable[str]) -> None:
        full_keys = [self._key(k) for k in keys]
        if not full_keys:
            return
        client = await self._writable_client(full_keys[0])
        try:
            await client.delete(*full_keys)
        except Exception as exc:
            logger.error("Redis delete failed (%d keys): %s", len(full_keys), exc)
            raise ServiceError(f"Falha ao remover chaves do Redis: {exc}", service="kv") from exc

    async def items_by_prefix(self, prefix: str) -> List[Tuple[str, Any]]:
        """Pares (chave sem prefixo global, valor) cujas chaves começam com `prefix`."""
        client = await self._ensure_client()
        if client is None:
            return []
        items: List[Tuple[str, Any]] = []
        try:
            raw_keys = [k async for k in client.scan_iter(match=f"{self._key(prefix)}*", count=500)]
            if not raw_keys:
                return []
            payloads = await client.mget(raw_keys)
        except Exception as exc:
            logger.warning("Redis scan failed (%s*): %s", prefix, exc)
            return []

        for raw_key, payload in zip(raw_keys, payloads):
            if payload is None:
                continue
            try:
                items.append((self._strip(raw_key), orjson.loads(payload)))
            except orjson.JSONDecodeError as exc:
                logger.debug("Redis payload ignored (%s): %s", raw_key, exc)
        return items

    async def get_by_prefix(self, prefix: str) -> List[Any]:
        return [value for _, value in await self.items_by_prefix(prefix)]


@dataclass
class MemoryKvStore:
    """Store em memória do processo. Valores passam por orjson para imitar o Redis."""

    _data: Dict[str, bytes] = field(default_factory=dict, repr=False)

    async def connect(self) -> None:
        return None

    async def close(self) -> None:
        return None

    @property
    def available(self) -> bool:
        return True

    async def get(self, key: str) -> Any:
        payload = self._data.get(key)
        return None if payload is None else orjson.loads(payload)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = orjson.dumps(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def delete_many(self, keys: Iterable[str]) -> None:
        for key in keys:
            self._data.pop(key, None)

    async def items_by_prefix(self, prefix: str) -> List[Tuple[str, Any]]:
        return [
            (key, orjson.loads(payload))
            for key, payload in list(self._data.items())
            if key.startswith(prefix)
        ]

    async def get_by_prefix(self, prefix: str) -> List[Any]:
        return [value for _, value in await self.items_by_prefix(prefix)]


KvStore = RedisKvStore | MemoryKvStore


def build_kv_store(enable_redis: Optional[bool] = None) -> KvStore:
    """Escolhe o backend conforme `settings.cache.enable_redis`."""
    use_redis = settings.cache.enable_redis if enable_redis is None else enable_redis
    if use_redis:
        return RedisKvStore(url=settings.cache.redis_url, key_prefix=settings.cache.key_prefix)
    logger.info("Redis disabled: using in-memory KV store")
    return MemoryKvStore()
