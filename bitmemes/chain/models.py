"""Pydantic models for Bitcoin blocks returned by Esplora."""

from pydantic import BaseModel, ConfigDict, Field


class BlockInfo(BaseModel):
    """Block identity as returned by ``GET /block/{hash}``."""

    hash: str = Field(..., description="Block hash", alias="id")
    height: int = Field(..., description="Block height")
    timestamp: int = Field(..., description="Block timestamp (unix seconds)")
    tx_count: int | None = Field(default=None, description="Number of transactions")
    size: int | None = Field(default=None, description="Block size in bytes")
    weight: int | None = Field(default=None, description="Block weight units")
    previous_block_hash: str | None = Field(
        default=None, description="Parent block hash", alias="previousblockhash"
    )
    median_time: int | None = Field(
        default=None, description="Median time past", alias="mediantime"
    )

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class AccessToken(BaseModel):
    """OAuth token issued for the Blockstream enterprise API."""

    access_token: str
    expires_in: int
    token_type: str | None = None

    model_config = ConfigDict(extra="ignore")


__all__ = ["AccessToken", "BlockInfo"]
