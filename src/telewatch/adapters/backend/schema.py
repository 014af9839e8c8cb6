"""Pydantic models describing the backend REST and stream payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class BackendModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# --- Live telemetry -------------------------------------------------------


class AlertPayload(BackendModel):
    id: str
    timestamp: int
    severity: str
    rule_name: str = Field(default="", alias="ruleName")
    description: str = ""
    pid: int = 0
    process_name: str = Field(default="", alias="processName")
    parent_name: str = Field(default="", alias="parentName")
    cgroup_id: str = Field(default="", alias="cgroupId")
    action: str = ""
    blocked: bool = False
    in_container: bool = Field(default=False, alias="inContainer")


class InsightActionPayload(BackendModel):
    label: str = ""
    action_id: str
    params: dict[str, Any] = Field(default_factory=dict)


class InsightPayload(BackendModel):
    id: str
    type: str
    title: str = ""
    summary: str = ""
    confidence: float = 0.0
    severity: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    actions: list[InsightActionPayload] = Field(default_factory=list)
    created_at: datetime | None = None

    @field_validator("actions", mode="before")
    @classmethod
    def _null_actions(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("data", mode="before")
    @classmethod
    def _null_data(cls, value: object) -> object:
        return {} if value is None else value


class InsightsResponse(BackendModel):
    insights: list[InsightPayload] | None = None
    total: int = 0


class HeartbeatPayload(BackendModel):
    type: Literal["heartbeat"]


class ExecEventPayload(BackendModel):
    type: Literal["exec"]
    timestamp: int
    pid: int
    ppid: int = 0
    cgroup_id: str = Field(default="", alias="cgroupId")
    comm: str = ""
    parent_comm: str = Field(default="", alias="parentComm")
    in_container: bool = Field(default=False, alias="inContainer")


class ConnectEventPayload(BackendModel):
    type: Literal["connect"]
    timestamp: int
    pid: int
    cgroup_id: str = Field(default="", alias="cgroupId")
    family: int = 0
    port: int = 0
    addr: str = ""
    in_container: bool = Field(default=False, alias="inContainer")


class FileEventPayload(BackendModel):
    type: Literal["file"]
    timestamp: int
    pid: int
    cgroup_id: str = Field(default="", alias="cgroupId")
    flags: int = 0
    filename: str = ""
    in_container: bool = Field(default=False, alias="inContainer")


StreamEventPayload = Annotated[
    ExecEventPayload | ConnectEventPayload | FileEventPayload,
    Field(discriminator="type"),
]


class EventRatesPayload(BackendModel):
    exec: int = 0
    network: int = 0
    file: int = 0


# --- Reference data -------------------------------------------------------


class DetectionRulePayload(BackendModel):
    name: str
    description: str = ""
    severity: str = ""
    action: str = ""
    type: str = ""
    match: dict[str, str] = Field(default_factory=dict)
    yaml: str = ""


class WorkloadPayload(BackendModel):
    id: str
    cgroup_path: str = Field(default="", alias="cgroupPath")
    exec_count: int = Field(default=0, alias="execCount")
    file_count: int = Field(default=0, alias="fileCount")
    connect_count: int = Field(default=0, alias="connectCount")
    alert_count: int = Field(default=0, alias="alertCount")
    blocked_count: int = Field(default=0, alias="blockedCount")
    first_seen: int = Field(default=0, alias="firstSeen")
    last_seen: int = Field(default=0, alias="lastSeen")


class ProcessInfoPayload(BackendModel):
    pid: int
    ppid: int = 0
    comm: str = ""
    cgroup_id: str = Field(default="", alias="cgroupId")
    timestamp: int = 0


class LearningStatusPayload(BackendModel):
    active: bool = False
    start_time: int = Field(default=0, alias="startTime")
    duration: int = 0
    pattern_count: int = Field(default=0, alias="patternCount")
    remaining_seconds: int = Field(default=0, alias="remainingSeconds")


class GeneratedRulePayload(BackendModel):
    name: str
    description: str = ""
    severity: str = ""
    action: str = ""
    yaml: str = ""
    selected: bool = False


class SystemStatsPayload(BackendModel):
    process_count: int = Field(default=0, alias="processCount")
    container_count: int = Field(default=0, alias="containerCount")
    events_per_sec: float = Field(default=0.0, alias="eventsPerSec")
    alert_count: int = Field(default=0, alias="alertCount")
    probe_status: str = Field(default="", alias="probeStatus")


# --- Assistant ------------------------------------------------------------


class RuleGenContext(BackendModel):
    current_page: str | None = Field(default=None, alias="currentPage")
    selected_item: str | None = Field(default=None, alias="selectedItem")
    recent_actions: list[str] | None = Field(default=None, alias="recentActions")


class RuleGenRequest(BackendModel):
    description: str
    context: RuleGenContext | None = None
    examples: list[Any] | None = None


class RuleGenResponse(BackendModel):
    rule: Any = None
    yaml: str = ""
    reasoning: str = ""
    confidence: float = 0.0
    warnings: list[str] = Field(default_factory=list)
    simulation: Any = None


class ExplainRequest(BackendModel):
    event_id: str | None = Field(default=None, alias="eventId")
    event_data: dict[str, Any] | None = Field(default=None, alias="eventData")
    question: str | None = None


class ExplainResponse(BackendModel):
    explanation: str = ""
    root_cause: str = Field(default="", alias="rootCause")
    matched_rule: Any = Field(default=None, alias="matchedRule")
    related_events: list[Any] | None = Field(default=None, alias="relatedEvents")
    suggested_actions: list[Any] | None = Field(default=None, alias="suggestedActions")


class AnalyzeRequest(BackendModel):
    type: Literal["process", "workload", "rule"]
    id: str


class AnalyzeResponse(BackendModel):
    summary: str = ""
    anomalies: list[Any] = Field(default_factory=list)
    baseline_status: str = Field(default="", alias="baselineStatus")
    recommendations: list[Any] = Field(default_factory=list)
    related_insights: list[Any] = Field(default_factory=list, alias="relatedInsights")


class AskInsightRequest(BackendModel):
    insight: dict[str, Any]
    question: str


class AskInsightResponse(BackendModel):
    answer: str = ""
    confidence: float = 0.0
    related_data: Any = None


class DiagnosisPayload(BackendModel):
    analysis: str = ""
    snapshot_summary: str = Field(default="", alias="snapshotSummary")
    provider: str = ""
    is_local: bool = Field(default=False, alias="isLocal")
    duration_ms: int = Field(default=0, alias="durationMs")
    timestamp: int = 0


class AssistantStatusPayload(BackendModel):
    enabled: bool = False
    status: str = ""
    provider: str = ""
    is_local: bool = Field(default=False, alias="isLocal")


class ChatRequest(BackendModel):
    message: str
    session_id: str = Field(alias="sessionId")


class ChatResponsePayload(BackendModel):
    message: str
    session_id: str = Field(default="", alias="sessionId")
    context_summary: str = Field(default="", alias="contextSummary")
    provider: str = ""
    is_local: bool = Field(default=False, alias="isLocal")
    duration_ms: int = Field(default=0, alias="durationMs")
    timestamp: int = 0
    message_count: int = Field(default=0, alias="messageCount")


class ChatHistoryMessage(BackendModel):
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: int = 0


class ChatStreamFrame(BackendModel):
    content: str = ""
    done: bool = False
    session_id: str | None = Field(default=None, alias="sessionId")
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.done or bool(self.error)


class ErrorPayload(BackendModel):
    error: str | None = None
    message: str | None = None
