from pydantic import BaseModel, Field, field_validator


class EncodeResponse(BaseModel):
    """Response model for an obfuscated ID."""
    value: int
    encoded: int


class DecodeResponse(BaseModel):
    """Response model for a recovered ID."""
    value: int
    decoded: int


class SeedInfo(BaseModel):
    """Public view of the active seed. The mask and inverse are never exposed."""
    name: str
    bits: int
    max_id: int
    prime: int


class RotateSeedPayload(BaseModel):
    """Request model for rotating the active seed."""
    admin_token: str = Field(..., min_length=1, max_length=256)

    @field_validator('admin_token')
    def validate_admin_token(cls, v):
        if not v.strip():
            raise ValueError("admin_token cannot be empty")
        return v.strip()


class ErrorResponse(BaseModel):
    detail: str
