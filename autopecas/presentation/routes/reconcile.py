from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile

from autopecas.config.constants import Messages
from autopecas.config.exceptions import ValidationError
from autopecas.config.logging_config import server_logger as logger
from autopecas.presentation.schemas.stock_schemas import MatchSkusRequest
from autopecas.server.dependencies import get_reconcile_service, require_admin
from autopecas.services.sku_reconciler import ReconcileService

router = APIRouter()


@router.post("/produtos/match-skus", dependencies=[Depends(require_admin)])
async def match_skus(
    body: MatchSkusRequest,
    service: Annotated[ReconcileService, Depends(get_reconcile_service)],
):
    """
    Casa SKUs importados (CSV/planilha) com o catálogo em três níveis:
    exato, normalizado (maiúsculas, sem espaços) e agressivo (só A-Z0-9).
    """
    return await service.match_skus(body.skus)


@router.post("/produtos/atributos/upload", dependencies=[Depends(require_admin)])
async def upload_atributos(
    service: Annotated[ReconcileService, Depends(get_reconcile_service)],
    file: UploadFile | None = File(default=None),
):
    if file is None:
        raise ValidationError("Nenhum arquivo CSV enviado.", field="file")

    raw = await file.read()
    if not raw.strip():
        raise ValidationError(Messages.CSV_EMPTY, field="file")

    csv_text = raw.decode("utf-8-sig", errors="replace")
    logger.info("CSV upload: %d bytes, filename=%s", len(raw), file.filename)
    return await service.import_attributes(csv_text)


@router.get("/produtos/atributos")
async def get_atributos(
    service: Annotated[ReconcileService, Depends(get_reconcile_service)],
    sku: str = "",
):
    """Atributos de um SKU (`?sku=`) ou de todos."""
    return await service.get_attributes(sku)


@router.delete("/produtos/atributos", dependencies=[Depends(require_admin)])
async def delete_atributos(service: Annotated[ReconcileService, Depends(get_reconcile_service)]):
    return await service.clear_attributes()
