"""Per-method request/response schemas for the backend RPC surface.

Each backend method is declared once as a ``MethodSpec`` so that the
correlation layer stays generic while call sites get validated, typed
results. Notification topics are declared the same way as
``NotificationSpec``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Literal, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

ParamsT = TypeVar("ParamsT", bound=BaseModel)
ResultT = TypeVar("ResultT")
PayloadT = TypeVar("PayloadT")


class _Params(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class NoParams(_Params):
    """Methods that take no arguments still send ``{}``."""


@dataclass(frozen=True)
class MethodSpec(Generic[ParamsT, ResultT]):
    name: str
    params_model: Type[ParamsT]
    result_type: Any
    _adapter: TypeAdapter = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_adapter", TypeAdapter(self.result_type))

    def dump_params(self, params: Optional[ParamsT]) -> Dict[str, Any]:
        if params is None:
            return {}
        if not isinstance(params, self.params_model):
            raise TypeError(f"{self.name} expects {self.params_model.__name__}, got {type(params).__name__}")
        return params.model_dump(by_alias=True, exclude_none=True)

    def parse_result(self, raw: Any) -> ResultT:
        return self._adapter.validate_python(raw)


@dataclass(frozen=True)
class NotificationSpec(Generic[PayloadT]):
    name: str
    payload_type: Any
    _adapter: TypeAdapter = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_adapter", TypeAdapter(self.payload_type))

    def parse_payload(self, raw: Any) -> PayloadT:
        return self._adapter.validate_python(raw)


# --------------------------------------------------------------------------- #
# Domain payloads
# --------------------------------------------------------------------------- #


class WorkspaceSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    sidebar_collapsed: bool = Field(default=False, alias="sidebarCollapsed")
    sort_order: Optional[int] = Field(default=None, alias="sortOrder")
    group_id: Optional[str] = Field(default=None, alias="groupId")


class WorkspaceInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    name: str
    path: str
    connected: bool = False
    codex_bin: Optional[str] = None
    kind: Optional[str] = None
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    settings: WorkspaceSettings = Field(default_factory=WorkspaceSettings)


class GitFileStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    path: str
    status: str
    additions: int = 0
    deletions: int = 0


class GitStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    branch_name: str = Field(alias="branchName")
    files: List[GitFileStatus] = Field(default_factory=list)
    staged_files: List[GitFileStatus] = Field(default_factory=list, alias="stagedFiles")
    unstaged_files: List[GitFileStatus] = Field(default_factory=list, alias="unstagedFiles")
    total_additions: int = Field(default=0, alias="totalAdditions")
    total_deletions: int = Field(default=0, alias="totalDeletions")


class WorkspaceFileContent(BaseModel):
    content: str
    truncated: bool = False


class AuthResult(BaseModel):
    ok: bool


class AppServerEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    workspace_id: str
    message: Dict[str, Any] = Field(default_factory=dict)


class TerminalOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    workspace_id: str = Field(alias="workspaceId")
    terminal_id: str = Field(alias="terminalId")
    data: str


class TerminalExit(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    workspace_id: str = Field(alias="workspaceId")
    terminal_id: str = Field(alias="terminalId")


# --------------------------------------------------------------------------- #
# Method parameters
# --------------------------------------------------------------------------- #


class AuthParams(_Params):
    token: str


class WorkspaceIdParams(_Params):
    workspace_id: str = Field(alias="workspaceId")


class IdParams(_Params):
    id: str


class AddWorkspaceParams(_Params):
    path: str
    codex_bin: Optional[str] = None


class ThreadParams(_Params):
    workspace_id: str = Field(alias="workspaceId")
    thread_id: str = Field(alias="threadId")


class SendUserMessageParams(_Params):
    workspace_id: str = Field(alias="workspaceId")
    thread_id: str = Field(alias="threadId")
    text: str
    model: Optional[str] = None
    effort: Optional[str] = None
    access_mode: Optional[Literal["read-only", "current", "full-access"]] = Field(default=None, alias="accessMode")
    images: Optional[List[str]] = None
    collaboration_mode: Optional[Dict[str, Any]] = Field(default=None, alias="collaborationMode")


class TurnInterruptParams(_Params):
    workspace_id: str = Field(alias="workspaceId")
    thread_id: str = Field(alias="threadId")
    turn_id: str = Field(alias="turnId")


class ReadWorkspaceFileParams(_Params):
    workspace_id: str = Field(alias="workspaceId")
    path: str


# --------------------------------------------------------------------------- #
# Registry
# --------------------------------------------------------------------------- #

AUTH = MethodSpec("auth", AuthParams, AuthResult)
LIST_WORKSPACES = MethodSpec("list_workspaces", NoParams, List[WorkspaceInfo])
ADD_WORKSPACE = MethodSpec("add_workspace", AddWorkspaceParams, WorkspaceInfo)
REMOVE_WORKSPACE = MethodSpec("remove_workspace", IdParams, Any)
CONNECT_WORKSPACE = MethodSpec("connect_workspace", IdParams, Any)
START_THREAD = MethodSpec("start_thread", WorkspaceIdParams, Dict[str, Any])
FORK_THREAD = MethodSpec("fork_thread", ThreadParams, Dict[str, Any])
SEND_USER_MESSAGE = MethodSpec("send_user_message", SendUserMessageParams, Any)
TURN_INTERRUPT = MethodSpec("turn_interrupt", TurnInterruptParams, Any)
GET_GIT_STATUS = MethodSpec("get_git_status", WorkspaceIdParams, GitStatus)
LIST_WORKSPACE_FILES = MethodSpec("list_workspace_files", WorkspaceIdParams, List[str])
READ_WORKSPACE_FILE = MethodSpec("read_workspace_file", ReadWorkspaceFileParams, WorkspaceFileContent)

APP_SERVER_EVENT = NotificationSpec("app-server-event", AppServerEvent)
TERMINAL_OUTPUT = NotificationSpec("terminal-output", TerminalOutput)
TERMINAL_EXIT = NotificationSpec("terminal-exit", TerminalExit)

METHODS: Dict[str, MethodSpec] = {
    spec.name: spec
    for spec in (
        AUTH,
        LIST_WORKSPACES,
        ADD_WORKSPACE,
        REMOVE_WORKSPACE,
        CONNECT_WORKSPACE,
        START_THREAD,
        FORK_THREAD,
        SEND_USER_MESSAGE,
        TURN_INTERRUPT,
        GET_GIT_STATUS,
        LIST_WORKSPACE_FILES,
        READ_WORKSPACE_FILE,
    )
}

NOTIFICATIONS: Dict[str, NotificationSpec] = {
    spec.name: spec for spec in (APP_SERVER_EVENT, TERMINAL_OUTPUT, TERMINAL_EXIT)
}
