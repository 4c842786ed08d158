"""
Sessão autenticada com a API REST do ERP SIGE.

Credenciais e token ficam no KV store (`sige_api_config` / `sige_api_token`)
para serem compartilhados entre workers. Não há lock em volta da sessão:
dois re-logins simultâneos gravam tokens válidos e o último vence.

Fluxo de `request()`:
1. token expirado → re-login proativo (se falhar, segue com o token antigo)
2. chamada com `Authorization: Bearer <token>`
3. HTTP 401 → re-login e uma única nova tentativa
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import httpx
import orjson

from ..config.constants import KvKeys, Messages
from ..config.exceptions import (
    ErpNotConfiguredError,
    ErpNotConnectedError,
    ServiceError,
    UpstreamError,
    ValidationError,
)
from ..config.logging_config import erp_logger as logger
from ..domain import ErpCredentials, ErpSession

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


@dataclass
class ErpResponse:
    ok: bool
    status: int
    data: Any


def to_iso(ts: float) -> str:
    """Epoch (segundos) → ISO-8601 UTC com milissegundos e sufixo Z."""
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Optional[str]) -> Optional[float]:
    """ISO-8601 → epoch em segundos. None para valores ausentes ou inválidos."""
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def _parse_body(text: str) -> Any:
    try:
        return orjson.loads(text)
    except orjson.JSONDecodeError:
        return {"rawText": text}


def _error_message(response: httpx.Response) -> str:
    message = f"SIGE retornou HTTP {response.status_code}"
    try:
        body = orjson.loads(response.text)
    except orjson.JSONDecodeError:
        return message
    if isinstance(body, dict):
        return body.get("message") or body.get("error") or message
    return message


def _token_from(auth_data: Dict[str, Any]) -> str:
    return auth_data.get("token") or auth_data.get("access_token") or auth_data.get("accessToken") or ""


def _refresh_from(auth_data: Dict[str, Any]) -> str:
    return auth_data.get("refreshToken") or auth_data.get("refresh_token") or ""


class ErpClient:
    """Cliente do SIGE com renovação automática de sessão."""

    def __init__(
        self,
        kv,
        timeout_seconds: float = 20.0,
        token_validity_hours: int = 12,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.kv = kv
        self.timeout_seconds = timeout_seconds
        self.token_validity = timedelta(hours=token_validity_hours)
        self.transport = transport
        self.clock = clock
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout_seconds,
                transport=self.transport,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None

    # --- Config -----------------------------------------------------------

    async def get_config(self) -> Optional[ErpCredentials]:
        return await self.kv.get(KvKeys.ERP_CONFIG)

    async def get_session(self) -> Optional[ErpSession]:
        return await self.kv.get(KvKeys.ERP_TOKEN)

    async def save_config(self, base_url: str, email: str, password: str) -> Dict[str, Any]:
        if not base_url or not email or not password:
            raise ValidationError("URL base, email e senha sao obrigatorios.")
        normalized_url = base_url.strip().rstrip("/")
        await self.kv.set(
            KvKeys.ERP_CONFIG,
            {
                "baseUrl": normalized_url,
                "email": email.strip(),
                "password": password,
                "updatedAt": to_iso(self.clock()),
            },
        )
        logger.info("SIGE save-config: baseUrl=%s", normalized_url)
        return {"success": True}

    async def public_config(self) -> Dict[str, Any]:
        """Configuração salva sem a senha."""
        config = await self.get_config()
        if not config:
            return {}
        return {
            "baseUrl": config.get("baseUrl") or "",
            "email": config.get("email") or "",
            "hasPassword": bool(config.get("password")),
            "updatedAt": config.get("updatedAt"),
        }

    async def is_ready(self) -> Optional[str]:
        """None quando pronto; senão a mensagem de indisponibilidade."""
        if not await self.get_config():
            return Messages.ERP_NOT_CONFIGURED
        if not await self.get_session():
            return Messages.ERP_NOT_CONNECTED
        return None

    # --- Sessão ---------------------------------------------------------

    async def _post_auth(self, url: str, payload: Dict[str, Any]) -> httpx.Response:
        try:
            return await self._get_client().post(url, json=payload)
        except httpx.HTTPError as exc:
            logger.error("SIGE auth request failed (%s): %s", url, exc)
            raise UpstreamError(f"Erro ao conectar com SIGE: {exc}", service="sige") from exc

    def _new_session(self, token: str, refresh_token: str) -> ErpSession:
        now = self.clock()
        return {
            "token": token,
            "refreshToken": refresh_token,
            "createdAt": to_iso(now),
            "expiresAt": to_iso(now + self.token_validity.total_seconds()),
        }

    def _auth_payload(self, response: httpx.Response) -> Dict[str, Any]:
        if response.is_error:
            message = _error_message(response)
            logger.warning("SIGE auth error: %s", message)
            raise UpstreamError(message, service="sige", upstream_status=response.status_code)
        try:
            data = orjson.loads(response.text)
        except orjson.JSONDecodeError as exc:
            raise UpstreamError(Messages.ERP_INVALID_JSON, service="sige") from exc
        return data if isinstance(data, dict) else {}

    async def _require_complete_config(self) -> Dict[str, Any]:
        config = await self.get_config()
        if not config:
            raise ErpNotConfiguredError(Messages.ERP_CONFIG_MISSING)
        if not config.get("baseUrl") or not config.get("email") or not config.get("password"):
            raise ValidationError(Messages.ERP_CONFIG_INCOMPLETE)
        return config

    async def connect(self) -> Dict[str, Any]:
        """
        Login com as credenciais salvas (`POST {baseUrl}/auth`).

        Raises:
            ErpNotConfiguredError: Credenciais não salvas
            ValidationError: Credenciais incompletas
            UpstreamError: SIGE respondeu erro / resposta não-JSON / falha de rede
        """
        config = await self._require_complete_config()
        auth_url = f"{config['baseUrl']}/auth"
        logger.info("SIGE connect: POST %s for %s", auth_url, config["email"])

        response = await self._post_auth(auth_url, {"email": config["email"], "password": config["password"]})
        auth_data = self._auth_payload(response)

        session = self._new_session(_token_from(auth_data), _refresh_from(auth_data))
        await self.kv.set(KvKeys.ERP_TOKEN, session)
        logger.info("SIGE connect: token stored, expires at %s", session["expiresAt"])

        return {
            "connected": True,
            "hasToken": bool(session["token"]),
            "hasRefreshToken": bool(session["refreshToken"]),
            "expiresAt": session["expiresAt"],
            "responseKeys": list(auth_data.keys()),
        }

    async def refresh_token(self) -> Dict[str, Any]:
        config = await self.get_config()
        if not config:
            raise ErpNotConfiguredError("Configuracao SIGE nao encontrada.")
        previous = await self.get_session()
        if not previous:
            raise ErpNotConnectedError(Messages.ERP_TOKEN_MISSING)
        if not previous.get("refreshToken"):
            raise ValidationError(Messages.ERP_REFRESH_UNAVAILABLE)

        refresh_url = f"{config['baseUrl']}/auth/refresh"
        logger.info("SIGE refresh-token: POST %s", refresh_url)
        response = await self._post_auth(refresh_url, {"refreshToken": previous["refreshToken"]})
        refresh_data = self._auth_payload(response)

        session = self._new_session(
            _token_from(refresh_data) or previous.get("token") or "",
            _refresh_from(refresh_data) or previous.get("refreshToken") or "",
        )
        await self.kv.set(KvKeys.ERP_TOKEN, session)
        return {"refreshed": True, "hasToken": bool(session["token"]), "expiresAt": session["expiresAt"]}

    async def status(self) -> Dict[str, Any]:
        config = await self.get_config()
        result: Dict[str, Any] = {"configured": bool(config)}
        if config:
            result.update(
                baseUrl=config.get("baseUrl"),
                email=config.get("email"),
                hasPassword=bool(config.get("password")),
            )

        session = await self.get_session()
        if not session:
            result.update(hasToken=False, expired=True)
            return result

        now_ms = self.clock() * 1000
        expires_at = parse_iso(session.get("expiresAt"))
        expires_ms = expires_at * 1000 if expires_at is not None else 0
        result.update(
            hasToken=bool(session.get("token")),
            hasRefreshToken=bool(session.get("refreshToken")),
            createdAt=session.get("createdAt"),
            expiresAt=session.get("expiresAt"),
            expired=now_ms > expires_ms,
            expiresInMs=int(max(0, expires_ms - now_ms)),
        )
        return result

    async def disconnect(self) -> Dict[str, Any]:
        await self.kv.delete(KvKeys.ERP_TOKEN)
        logger.info("SIGE disconnect: token cleared")
        return {"disconnected": True}

    async def relogin(self) -> Optional[str]:
        """Re-login com as credenciais salvas. Nunca levanta: None em qualquer falha."""
        config = await self.get_config()
        if not config or not config.get("baseUrl") or not config.get("email") or not config.get("password"):
            return None

        auth_url = f"{config['baseUrl']}/auth"
        logger.info("SIGE auto-relogin: POST %s", auth_url)
        try:
            response = await self._get_client().post(
                auth_url, json={"email": config["email"], "password": config["password"]}
            )
        except httpx.HTTPError as exc:
            logger.warning("SIGE auto-relogin: request failed: %s", exc)
            return None

        if response.is_error:
            logger.warning("SIGE auto-relogin: FAILED HTTP %s", response.status_code)
            return None
        auth_data = _parse_body(response.text)
        if not isinstance(auth_data, dict):
            return None
        token = _token_from(auth_data)
        if not token:
            return None

        session = self._new_session(token, _refresh_from(auth_data))
        try:
            await self.kv.set(KvKeys.ERP_TOKEN, session)
        except ServiceError as exc:
            logger.warning("SIGE auto-relogin: session not persisted: %s", exc.message)
            return token
        logger.info("SIGE auto-relogin: SUCCESS, expires %s", session["expiresAt"])
        return token

    # --- Chamadas autenticadas -------------------------------------------

    async def _send(self, method: str, url: str, token: str, json: Any) -> httpx.Response:
        kwargs: Dict[str, Any] = {"headers": {"Authorization": f"Bearer {token}"}}
        if json is not None and method in _BODY_METHODS:
            kwargs["json"] = json
        try:
            return await self._get_client().request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("SIGE %s %s failed: %s", method, url, exc)
            raise UpstreamError(f"Erro ao consultar SIGE: {exc}", service="sige") from exc

    async def request(self, method: str, path: str, json: Any = None) -> ErpResponse:
        """
        Chamada autenticada a `{baseUrl}{path}`.

        Raises:
            ErpNotConfiguredError: Sem credenciais salvas
            ErpNotConnectedError: Sem token (ou token vazio)
            UpstreamError: Falha de transporte
        """
        method = method.upper()
        config = await self.get_config()
        if not config:
            raise ErpNotConfiguredError("Configuracao SIGE nao encontrada.")
        session = await self.get_session()
        if not session:
            raise ErpNotConnectedError("Token SIGE nao encontrado. Conecte-se primeiro.")
        token = session.get("token")
        if not token:
            raise ErpNotConnectedError("Token SIGE vazio. Reconecte.")

        expires_at = parse_iso(session.get("expiresAt"))
        if expires_at is not None and expires_at < self.clock():
            logger.info("SIGE: token expired (%s), attempting auto-relogin", session.get("expiresAt"))
            new_token = await self.relogin()
            if new_token:
                token = new_token
            else:
                logger.warning("SIGE: auto-relogin failed, proceeding with expired token")

        url = f"{config['baseUrl']}{path}"
        response = await self._send(method, url, token, json)
        logger.debug("SIGE %s %s => HTTP %s, %d bytes", method, path, response.status_code, len(response.content))

        if response.status_code == 401:
            logger.info("SIGE: got 401 on %s, attempting auto-relogin and retry", path)
            new_token = await self.relogin()
            if new_token:
                response = await self._send(method, url, new_token, json)
                logger.debug("SIGE (retry) %s %s => HTTP %s", method, path, response.status_code)
            else:
                logger.warning("SIGE: auto-relogin failed, returning original 401")

        return ErpResponse(ok=response.is_success, status=response.status_code, data=_parse_body(response.text))
