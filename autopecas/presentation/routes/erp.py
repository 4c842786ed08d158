from typing import Annotated

from fastapi import APIRouter, Depends

from autopecas.infrastructure.erp_client import ErpClient
from autopecas.presentation.schemas.erp_schemas import ErpConfigRequest
from autopecas.server.dependencies import get_erp_client, require_admin

router = APIRouter(dependencies=[Depends(require_admin)])

Erp = Annotated[ErpClient, Depends(get_erp_client)]


@router.post("/save-config")
async def save_config(body: ErpConfigRequest, erp: Erp):
    return await erp.save_config(body.baseUrl, body.email, body.password)


@router.get("/config")
async def get_config(erp: Erp):
    """Credenciais salvas (sem a senha)."""
    return await erp.public_config()


@router.post("/connect")
async def connect(erp: Erp):
    return await erp.connect()


@router.post("/refresh-token")
async def refresh_token(erp: Erp):
    return await erp.refresh_token()


@router.get("/status")
async def status(erp: Erp):
    return await erp.status()


@router.post("/disconnect")
async def disconnect(erp: Erp):
    return await erp.disconnect()
