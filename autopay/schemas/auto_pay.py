"""Auto-Pay Schemas — enable/disable requests and status response."""

from pydantic import BaseModel, Field, field_validator


class AutoPayEnable(BaseModel):
    """Authorization material for unattended execution (stored encrypted)."""
    private_key: str = Field(min_length=64, max_length=66)

    @field_validator("private_key")
    @classmethod
    def strip_key(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("private_key cannot be empty")
        return v


class AutoPayStatus(BaseModel):
    auto_pay_enabled: bool
    has_authorization: bool
    wallet_address: str | None = None
