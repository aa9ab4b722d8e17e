"""Helpers for building/parsing RPC frames on the backend message stream."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ValidationError

from shared.models.rpc import RpcErrorBody, RpcNotification, RpcReply, RpcRequest

LOGGER = logging.getLogger(__name__)

Params = Union[Dict[str, Any], BaseModel, None]
InboundMessage = Union[RpcReply, RpcNotification]


def _params_dict(params: Params) -> Dict[str, Any]:
    if params is None:
        return {}
    if isinstance(params, BaseModel):
        return params.model_dump(by_alias=True, exclude_none=True)
    return dict(params)


def encode_request(call_id: int, method: str, params: Params = None) -> str:
    """Serialize an outbound ``{id, method, params}`` request."""

    request = RpcRequest(id=call_id, method=method, params=_params_dict(params))
    return request.model_dump_json()


def encode_result(call_id: int, result: Any) -> str:
    return json.dumps({"id": call_id, "result": result})


def encode_error(call_id: int, message: str, *, code: Any = None, data: Any = None) -> str:
    error = RpcErrorBody(message=message, code=code, data=data)
    return json.dumps({"id": call_id, "error": error.model_dump(exclude_none=True)})


def encode_notification(method: str, params: Any = None) -> str:
    return json.dumps({"method": method, "params": params})


def parse_message(raw: Union[str, bytes, bytearray]) -> Optional[InboundMessage]:
    """Classify one inbound frame as a reply or a notification.

    Returns ``None`` for anything that is not a well-formed reply or
    notification; such frames are dropped by the caller.
    """

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            LOGGER.debug("Dropping non-UTF-8 frame")
            return None
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    if not text:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        LOGGER.debug("Dropping malformed frame: %.200s", text)
        return None
    if not isinstance(data, dict):
        return None

    try:
        if isinstance(data.get("id"), int) and not isinstance(data.get("id"), bool):
            return RpcReply.model_validate(data)
        if isinstance(data.get("method"), str) and data["method"]:
            return RpcNotification.model_validate(data)
    except ValidationError as exc:
        LOGGER.debug("Dropping invalid frame: %s", exc)
        return None
    return None
