"""Schemas Pydantic da integração SIGE."""

from pydantic import BaseModel, field_validator


class ErpConfigRequest(BaseModel):
    """Credenciais salvas via POST /api/sige/save-config."""

    baseUrl: str = ""
    email: str = ""
    password: str = ""

    @field_validator("baseUrl", "email")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        return v.strip()
