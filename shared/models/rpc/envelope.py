from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

DEFAULT_ERROR_MESSAGE = "RPC error"


class RpcErrorBody(BaseModel):
    """Error object carried by a failed reply."""

    model_config = ConfigDict(extra="allow")

    message: str = DEFAULT_ERROR_MESSAGE
    code: Optional[Any] = None
    data: Optional[Any] = None

    @field_validator("message", mode="before")
    @classmethod
    def _default_message(cls, value: Any) -> str:
        if value is None or value == "":
            return DEFAULT_ERROR_MESSAGE
        return str(value)


class RpcRequest(BaseModel):
    """Correlated request sent from the client to the backend."""

    id: StrictInt
    method: str
    params: Dict[str, Any] = Field(default_factory=dict)


class RpcReply(BaseModel):
    """Reply to a request, matched to its caller by ``id``."""

    model_config = ConfigDict(extra="ignore")

    id: StrictInt
    result: Any = None
    error: Optional[RpcErrorBody] = None

    @field_validator("error", mode="before")
    @classmethod
    def _coerce_error(cls, value: Any) -> Any:
        if value is None or isinstance(value, (dict, RpcErrorBody)):
            return value
        return {"message": str(value)}


class RpcNotification(BaseModel):
    """Unsolicited push message delivered to topic subscribers."""

    model_config = ConfigDict(extra="ignore")

    method: str
    params: Any = None
