"""Runtime configuration injected into the served frontend page."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

RUNTIME_CONFIG_GLOBAL = "__CODEX_MONITOR_RUNTIME_CONFIG__"


class RuntimeConfig(BaseModel):
    """Values the asset server hands to the page so it can find the backend."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api_base: Optional[str] = Field(default=None, alias="apiBase")
    rpc_url: Optional[str] = Field(default=None, alias="rpcUrl")
    token: Optional[str] = None
    default_workspace_path: Optional[str] = Field(default=None, alias="defaultWorkspacePath")
    disable_default_workspace: Optional[bool] = Field(default=None, alias="disableDefaultWorkspace")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)
