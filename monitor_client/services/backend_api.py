"""Typed wrappers over the backend RPC methods used by the UI."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from monitor_client.network.client import RpcSessionClient
from monitor_client.network.errors import RpcConnectionError, RpcTimeoutError
from shared.models.rpc import methods
from shared.models.rpc.methods import AuthResult, GitStatus, WorkspaceFileContent, WorkspaceInfo

LOGGER = logging.getLogger(__name__)


class BackendApi:
    """Facade that keeps call sites free of method names and raw dicts."""

    def __init__(self, client: RpcSessionClient) -> None:
        self._client = client

    @property
    def client(self) -> RpcSessionClient:
        return self._client

    async def authenticate(self, token: str) -> AuthResult:
        return await self._client.call_method(methods.AUTH, methods.AuthParams(token=token))

    async def list_workspaces(self) -> List[WorkspaceInfo]:
        """Known workspaces, or an empty list while the backend is unreachable."""

        try:
            return await self._client.call_method(methods.LIST_WORKSPACES)
        except (RpcConnectionError, RpcTimeoutError) as exc:
            LOGGER.warning("RPC unavailable; returning empty workspaces list (%s)", exc)
            return []

    async def add_workspace(self, path: str, codex_bin: Optional[str] = None) -> WorkspaceInfo:
        params = methods.AddWorkspaceParams(path=path, codex_bin=codex_bin)
        return await self._client.call_method(methods.ADD_WORKSPACE, params)

    async def remove_workspace(self, workspace_id: str) -> None:
        await self._client.call_method(methods.REMOVE_WORKSPACE, methods.IdParams(id=workspace_id))

    async def connect_workspace(self, workspace_id: str) -> None:
        await self._client.call_method(methods.CONNECT_WORKSPACE, methods.IdParams(id=workspace_id))

    async def start_thread(self, workspace_id: str) -> Dict[str, Any]:
        params = methods.WorkspaceIdParams(workspace_id=workspace_id)
        return await self._client.call_method(methods.START_THREAD, params)

    async def fork_thread(self, workspace_id: str, thread_id: str) -> Dict[str, Any]:
        params = methods.ThreadParams(workspace_id=workspace_id, thread_id=thread_id)
        return await self._client.call_method(methods.FORK_THREAD, params)

    async def send_user_message(
        self,
        workspace_id: str,
        thread_id: str,
        text: str,
        *,
        model: Optional[str] = None,
        effort: Optional[str] = None,
        access_mode: Optional[str] = None,
        images: Optional[List[str]] = None,
        collaboration_mode: Optional[Dict[str, Any]] = None,
    ) -> Any:
        params = methods.SendUserMessageParams(
            workspace_id=workspace_id,
            thread_id=thread_id,
            text=text,
            model=model,
            effort=effort,
            access_mode=access_mode,
            images=images,
            collaboration_mode=collaboration_mode or None,
        )
        return await self._client.call_method(methods.SEND_USER_MESSAGE, params)

    async def interrupt_turn(self, workspace_id: str, thread_id: str, turn_id: str) -> Any:
        params = methods.TurnInterruptParams(workspace_id=workspace_id, thread_id=thread_id, turn_id=turn_id)
        return await self._client.call_method(methods.TURN_INTERRUPT, params)

    async def get_git_status(self, workspace_id: str) -> GitStatus:
        params = methods.WorkspaceIdParams(workspace_id=workspace_id)
        return await self._client.call_method(methods.GET_GIT_STATUS, params)

    async def list_workspace_files(self, workspace_id: str) -> List[str]:
        params = methods.WorkspaceIdParams(workspace_id=workspace_id)
        return await self._client.call_method(methods.LIST_WORKSPACE_FILES, params)

    async def read_workspace_file(self, workspace_id: str, path: str) -> WorkspaceFileContent:
        params = methods.ReadWorkspaceFileParams(workspace_id=workspace_id, path=path)
        return await self._client.call_method(methods.READ_WORKSPACE_FILE, params)
