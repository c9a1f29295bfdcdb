"""
FastAPI Backend for Scrum Health

REST API for health metric classification, PO approvals, sprint velocity
projection and exports.
"""

import logging
import os
from datetime import datetime
from typing import Optional, Union
from contextlib import asynccontextmanager

import yaml
from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel, Field

from .classifier import ThresholdClassifier
from .exporter import Exporter, export_filename
from .history import historical_velocities, velocity_stats
from .metrics import DEFAULT_METRICS, display_name, summarize_metrics
from .projector import (
    Holiday,
    MemberRole,
    ProjectionRules,
    SprintVelocityForm,
    TeamMember,
    VelocityProjector,
    validate_velocity_form,
    velocity_form_warnings,
)
from .retrospective import RetroCategory, group_items
from .roles import Capabilities, Role, capabilities_for
from .store import MetricStore, NotFoundError

logger = logging.getLogger(__name__)


# Configuration
class Config:
    """Load configuration from config.yaml and environment."""

    def __init__(self, config_path: str = "config/config.yaml"):
        self.config = {}

        if os.path.exists(config_path):
            with open(config_path) as f:
                self.config = yaml.safe_load(f) or {}

        # Override with environment variables
        self._load_env()

    def _load_env(self):
        """Load configuration from environment variables."""
        env_mapping = {
            "SCRUM_HEALTH_API_URL": ("dashboard", "url"),
            "SCRUM_HEALTH_API_TOKEN": ("dashboard", "token"),
            "SCRUM_HEALTH_DEFAULT_ROLE": ("roles", "default"),
            "SCRUM_HEALTH_LOG_LEVEL": ("logging", "level"),
            "SCRUM_HEALTH_SEED_DEFAULTS": ("store", "seed_defaults"),
        }

        for env_var, (section, key) in env_mapping.items():
            value = os.getenv(env_var)
            if value:
                if not self.config.get(section):
                    self.config[section] = {}
                self.config[section][key] = value

    def get(self, section: str, key: str, default=None):
        """Get configuration value."""
        return (self.config.get(section) or {}).get(key, default)

    @property
    def dashboard_url(self) -> Optional[str]:
        return self.get("dashboard", "url")

    @property
    def dashboard_token(self) -> Optional[str]:
        return self.get("dashboard", "token")

    @property
    def default_role(self) -> Role:
        return Role.parse(self.get("roles", "default"))

    @property
    def log_level(self) -> str:
        return str(self.get("logging", "level", "INFO")).upper()

    @property
    def seed_defaults(self) -> bool:
        value = self.get("store", "seed_defaults", True)
        if isinstance(value, str):
            return value.strip().lower() not in ("0", "false", "no", "off")
        return bool(value)

    @property
    def recommendation_rules(self) -> ProjectionRules:
        rules = self.config.get("recommendations") or {}
        defaults = ProjectionRules()
        return ProjectionRules(
            scope_capacity_ratio=float(rules.get("scope_capacity_ratio", defaults.scope_capacity_ratio)),
            member_capacity_percent=float(rules.get("member_capacity_percent", defaults.member_capacity_percent)),
            short_sprint_days=int(rules.get("short_sprint_days", defaults.short_sprint_days)),
        )


# Global instances
config = Config()
classifier = ThresholdClassifier()
projector = VelocityProjector(rules=config.recommendation_rules)
exporter = Exporter()
store = MetricStore(classifier=classifier)


def get_store() -> MetricStore:
    return store


def get_capabilities(x_scrum_role: Optional[str] = Header(default=None)) -> Capabilities:
    """Advisory capabilities from the X-Scrum-Role header."""
    return capabilities_for(Role.parse(x_scrum_role, default=config.default_role))


def require(capabilities: Capabilities, flag: str, action: str):
    if not getattr(capabilities, flag):
        raise HTTPException(status_code=403, detail=f"{capabilities.label} role cannot {action}")


# Pydantic models for API
class TeamCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    size: int = Field(default=0, ge=0)
    sprint_duration_days: int = 10


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    size: Optional[int] = Field(default=None, ge=0)
    sprint_duration_days: Optional[int] = None


class RosterMemberCreate(BaseModel):
    name: str
    role: MemberRole = MemberRole.FULLSTACK
    capacity_factor: float = 1.0


class VelocityEntry(BaseModel):
    sprint_number: str
    planned_story_points: float
    completed_story_points: float
    sprint_duration_days: int = 14
    absent_days: int = 0
    holiday_days: int = 0
    start_date: Optional[str] = None
    end_date: Optional[str] = None


class BoardCreate(BaseModel):
    sprint_number: str
    title: str = ""


class RetroItemCreate(BaseModel):
    category: RetroCategory
    content: str
    author_name: Optional[str] = None


class MetricConfigUpdate(BaseModel):
    green_threshold: Optional[float] = None
    yellow_threshold: Optional[float] = None
    red_threshold: Optional[float] = None
    is_higher_better: Optional[bool] = None


class HealthMetricEntry(BaseModel):
    metric_name: str
    sprint_number: str
    value: Optional[Union[float, str]] = None


class ApprovalRequest(BaseModel):
    approver: Optional[str] = None
    comment: Optional[str] = None


class ClassifyRequest(BaseModel):
    team_id: int
    metric_name: str
    value: Optional[Union[float, str]] = None


class TeamMemberIn(BaseModel):
    name: str = ""
    role: MemberRole = MemberRole.FULLSTACK
    capacity_factor: float = 1.0
    absent_dates: list[str] = Field(default_factory=list)
    id: Optional[str] = None


class HolidayIn(BaseModel):
    date: str = ""
    name: str = ""
    id: Optional[str] = None


class VelocityRequest(BaseModel):
    team_name: str = ""
    historical_velocities: list[float] = Field(default_factory=list)
    team_size: Optional[int] = None
    team_members: list[TeamMemberIn] = Field(default_factory=list)
    sprint_start_date: Optional[str] = None
    sprint_end_date: Optional[str] = None
    holidays: list[HolidayIn] = Field(default_factory=list)

    def to_form(self) -> SprintVelocityForm:
        return SprintVelocityForm(
            team_name=self.team_name,
            historical_velocities=list(self.historical_velocities),
            team_members=[
                TeamMember(
                    name=m.name,
                    role=m.role,
                    capacity_factor=m.capacity_factor,
                    absent_dates=list(m.absent_dates),
                    id=m.id,
                )
                for m in self.team_members
            ],
            sprint_start_date=self.sprint_start_date,
            sprint_end_date=self.sprint_end_date,
            holidays=[Holiday(date=h.date, name=h.name, id=h.id) for h in self.holidays],
            team_size=self.team_size,
        )


def validated_form(request: VelocityRequest) -> SprintVelocityForm:
    form = request.to_form()
    problems = validate_velocity_form(form)
    if problems:
        raise HTTPException(status_code=422, detail=problems)
    return form


# Lifespan context manager
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logging.basicConfig(level=config.log_level)
    logger.info("Scrum Health API starting up (default role: %s)", config.default_role.value)
    yield
    logger.info("Scrum Health API shutting down")


# Create FastAPI app
app = FastAPI(
    title="Scrum Health",
    description="API for team health metrics, PO approvals and sprint velocity planning",
    version="1.0.0",
    lifespan=lifespan
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
        "integrations": {
            "dashboard": config.dashboard_url is not None,
        }
    }


@app.get("/api/capabilities")
async def get_capabilities_endpoint(capabilities: Capabilities = Depends(get_capabilities)):
    """What the current (advisory) role may do in the UI."""
    return capabilities.to_dict()


@app.get("/api/metrics/catalog")
async def get_metric_catalog():
    """Standard metrics with their default thresholds."""
    return [
        {
            "metric_name": d.name,
            "display_name": d.display_name,
            "description": d.description,
            "is_higher_better": d.is_higher_better,
            "green_threshold": d.green_threshold,
            "yellow_threshold": d.yellow_threshold,
        }
        for d in DEFAULT_METRICS.values()
    ]


# Team endpoints
@app.get("/api/teams")
async def list_teams(store: MetricStore = Depends(get_store)):
    return [t.to_dict() for t in store.list_teams()]


@app.post("/api/teams", status_code=201)
async def create_team(
    request: TeamCreate,
    store: MetricStore = Depends(get_store),
    capabilities: Capabilities = Depends(get_capabilities)
):
    require(capabilities, "can_manage_teams", "manage teams")
    team = store.create_team(
        request.name,
        description=request.description,
        sprint_duration_days=request.sprint_duration_days,
        seed_defaults=config.seed_defaults,
        size=request.size,
    )
    return team.to_dict()


@app.get("/api/teams/{team_id}")
async def get_team(team_id: int, store: MetricStore = Depends(get_store)):
    try:
        return store.get_team(team_id).to_dict()
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.put("/api/teams/{team_id}")
async def update_team(
    team_id: int,
    request: TeamUpdate,
    store: MetricStore = Depends(get_store),
    capabilities: Capabilities = Depends(get_capabilities)
):
    require(capabilities, "can_manage_teams", "manage teams")
    try:
        team = store.update_team(
            team_id,
            name=request.name,
            description=request.description,
            size=request.size,
            sprint_duration_days=request.sprint_duration_days,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return team.to_dict()


# Roster endpoints
@app.get("/api/teams/{team_id}/members")
async def list_team_members(team_id: int, store: MetricStore = Depends(get_store)):
    try:
        return [m.to_dict() for m in store.list_members(team_id)]
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/teams/{team_id}/members", status_code=201)
async def add_team_member(
    team_id: int,
    request: RosterMemberCreate,
    store: MetricStore = Depends(get_store),
    capabilities: Capabilities = Depends(get_capabilities)
):
    require(capabilities, "can_manage_teams", "manage teams")
    try:
        member = store.add_member(team_id, request.name, request.role, request.capacity_factor)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return member.to_dict()


@app.delete("/api/team-members/{member_id}", status_code=204)
async def remove_team_member(
    member_id: int,
    store: MetricStore = Depends(get_store),
    capabilities: Capabilities = Depends(get_capabilities)
):
    require(capabilities, "can_manage_teams", "manage teams")
    try:
        store.remove_member(member_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)


# Velocity history endpoints
@app.get("/api/teams/{team_id}/velocity")
async def get_team_velocity(team_id: int, store: MetricStore = Depends(get_store)):
    """Recorded sprints (most recent first) with summary statistics."""
    try:
        records = store.list_velocity(team_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {
        "sprints": [r.to_dict() for r in records],
        "stats": velocity_stats(records).to_dict(),
    }


@app.post("/api/teams/{team_id}/velocity", status_code=201)
async def add_team_velocity(
    team_id: int,
    entry: VelocityEntry,
    store: MetricStore = Depends(get_store),
    capabilities: Capabilities = Depends(get_capabilities)
):
    require(capabilities, "can_enter_data", "enter velocity")
    try:
        record = store.add_velocity(team_id, **entry.model_dump())
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return record.to_dict()


@app.get("/api/teams/{team_id}/planning-form")
async def get_planning_form(team_id: int, store: MetricStore = Depends(get_store)):
    """Planning form prefilled from the roster and the last recorded sprints."""
    try:
        team = store.get_team(team_id)
        members = store.list_members(team_id)
        history = store.list_velocity(team_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {
        "team_name": team.name,
        "historical_velocities": historical_velocities(history),
        "team_size": len(members),
        "team_members": [
            {"id": str(m.id), "name": m.name, "role": m.role.value,
             "capacity_factor": m.capacity_factor, "absent_dates": []}
            for m in members
        ],
        "holidays": [],
    }


# Threshold configuration endpoints
@app.get("/api/teams/{team_id}/metric-configs")
async def get_metric_configs(team_id: int, store: MetricStore = Depends(get_store)):
    try:
        configs = store.list_configs(team_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [
        {**c.to_dict(), "display_name": display_name(c.metric_name), "legend": c.describe()}
        for c in configs
    ]


@app.put("/api/metric-configs/{team_id}/{metric_name}")
async def update_metric_config(
    team_id: int,
    metric_name: str,
    request: MetricConfigUpdate,
    store: MetricStore = Depends(get_store),
    capabilities: Capabilities = Depends(get_capabilities)
):
    """Update thresholds; inconsistent thresholds are saved and returned with warnings."""
    require(capabilities, "can_edit_config", "edit thresholds")
    try:
        config_ = store.update_config(
            team_id,
            metric_name,
            green_threshold=request.green_threshold,
            yellow_threshold=request.yellow_threshold,
            red_threshold=request.red_threshold,
            is_higher_better=request.is_higher_better,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return config_.to_dict()


# Health metric endpoints
@app.get("/api/teams/{team_id}/health-metrics")
async def get_team_health_metrics(
    team_id: int,
    sprint: Optional[str] = None,
    store: MetricStore = Depends(get_store)
):
    try:
        records = store.list_metrics(team_id, sprint_number=sprint)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [r.to_dict() for r in records]


@app.post("/api/teams/{team_id}/health-metrics", status_code=201)
async def record_health_metric(
    team_id: int,
    entry: HealthMetricEntry,
    store: MetricStore = Depends(get_store),
    capabilities: Capabilities = Depends(get_capabilities)
):
    require(capabilities, "can_enter_data", "enter metric values")
    try:
        record = store.record_metric(team_id, entry.metric_name, entry.sprint_number, entry.value)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    config_ = store.get_config(team_id, entry.metric_name)
    return {**record.to_dict(), "unconfigured": config_ is None}


@app.get("/api/health-metrics/all")
async def get_all_health_metrics(
    store: MetricStore = Depends(get_store),
    capabilities: Capabilities = Depends(get_capabilities)
):
    require(capabilities, "can_view_all", "view all teams")
    return [r.to_dict() for r in store.all_metrics()]


@app.get("/api/red-metrics")
async def get_red_metrics(store: MetricStore = Depends(get_store)):
    """Red metrics still waiting for PO approval."""
    return [r.to_dict() for r in store.red_metrics()]


@app.post("/api/health-metrics/{metric_id}/approve")
async def approve_health_metric(
    metric_id: int,
    request: ApprovalRequest,
    x_scrum_user: Optional[str] = Header(default=None),
    store: MetricStore = Depends(get_store),
    capabilities: Capabilities = Depends(get_capabilities)
):
    """Force a metric's displayed colour to green, keeping its computed colour."""
    require(capabilities, "can_approve", "approve metrics")
    approver = x_scrum_user or request.approver or "product_owner"
    try:
        record = store.approve_metric(metric_id, approver, request.comment)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return record.to_dict()


@app.post("/api/classify")
async def classify_value(request: ClassifyRequest, store: MetricStore = Depends(get_store)):
    """Classify a value without storing it (live colouring while typing)."""
    try:
        store.get_team(request.team_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    result = classifier.classify(request.value, store.get_config(request.team_id, request.metric_name))
    return {"metric_name": request.metric_name, **result.to_dict()}


# Sprint velocity endpoints
@app.post("/api/sprint-velocity/calculate")
async def calculate_sprint_velocity(request: VelocityRequest):
    """Project the sprint; non-blocking input warnings ride along with the result."""
    form = validated_form(request)
    return {**projector.project(form).to_dict(), "warnings": velocity_form_warnings(form)}


@app.post("/api/sprint-calculations", status_code=201)
async def save_sprint_calculation(request: VelocityRequest, store: MetricStore = Depends(get_store)):
    form = validated_form(request)
    result = projector.project(form)
    saved = store.save_calculation(form.team_name, form.historical_velocities, result)
    return saved.to_dict()


@app.get("/api/sprint-calculations")
async def list_sprint_calculations(
    team_name: Optional[str] = None,
    store: MetricStore = Depends(get_store)
):
    return [c.to_dict() for c in store.list_calculations(team_name)]


# Retrospective endpoints
@app.get("/api/teams/{team_id}/retrospective-boards")
async def list_retrospective_boards(team_id: int, store: MetricStore = Depends(get_store)):
    try:
        return [b.to_dict() for b in store.list_boards(team_id)]
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@app.post("/api/teams/{team_id}/retrospective-boards", status_code=201)
async def create_retrospective_board(
    team_id: int,
    request: BoardCreate,
    store: MetricStore = Depends(get_store)
):
    try:
        board = store.create_board(team_id, request.sprint_number, request.title)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return board.to_dict()


@app.get("/api/retrospective-boards/{board_id}/items")
async def list_retrospective_items(
    board_id: int,
    grouped: bool = False,
    store: MetricStore = Depends(get_store)
):
    """Board items, optionally grouped into the four columns."""
    try:
        items = store.list_items(board_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if grouped:
        return group_items(items)
    return [i.to_dict() for i in items]


@app.post("/api/retrospective-boards/{board_id}/items", status_code=201)
async def add_retrospective_item(
    board_id: int,
    request: RetroItemCreate,
    store: MetricStore = Depends(get_store)
):
    try:
        item = store.add_item(board_id, request.category, request.content, request.author_name)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return item.to_dict()


@app.delete("/api/retrospective-items/{item_id}", status_code=204)
async def delete_retrospective_item(item_id: int, store: MetricStore = Depends(get_store)):
    try:
        store.delete_item(item_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=204)


# Analytics
@app.get("/api/analytics/summary")
async def get_analytics_summary(
    team_id: Optional[int] = None,
    store: MetricStore = Depends(get_store),
    capabilities: Capabilities = Depends(get_capabilities)
):
    """Counts by displayed colour, overall and per team."""
    if team_id is None:
        require(capabilities, "can_view_all", "view all teams")
        teams = store.list_teams()
    else:
        try:
            teams = [store.get_team(team_id)]
        except NotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

    per_team = []
    all_records = []
    for team in teams:
        records = store.list_metrics(team.id)
        all_records.extend(records)
        per_team.append({"team_id": team.id, "team_name": team.name, **summarize_metrics(records).to_dict()})

    return {"summary": summarize_metrics(all_records).to_dict(), "teams": per_team}


# Export endpoints
@app.get("/api/reports/metrics.csv")
async def export_metrics_csv(
    store: MetricStore = Depends(get_store),
    capabilities: Capabilities = Depends(get_capabilities)
):
    require(capabilities, "can_view_all", "export all teams")
    team_names = {t.id: t.name for t in store.list_teams()}
    body = exporter.metrics(store.all_metrics(), format="csv", team_names=team_names)
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{export_filename(None, "metrics")}"'},
    )


@app.get("/api/reports/metrics/text")
async def get_metrics_text_report(team_id: int, sprint: Optional[str] = None, store: MetricStore = Depends(get_store)):
    try:
        records = store.list_metrics(team_id, sprint_number=sprint)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"report": exporter.metrics(records, format="text")}


@app.post("/api/reports/velocity.json")
async def export_velocity_json(request: VelocityRequest):
    form = validated_form(request)
    result = projector.project(form)
    return PlainTextResponse(
        content=exporter.velocity(form, result, format="json"),
        media_type="application/json",
        headers={
            "Content-Disposition": f'attachment; filename="{export_filename(form.team_name, "velocity")}"'
        },
    )


@app.post("/api/reports/velocity/text")
async def get_velocity_text_report(request: VelocityRequest):
    form = validated_form(request)
    result = projector.project(form)
    return {"report": exporter.velocity(form, result, format="text")}


# Run with: uvicorn scrum_health.api:app --reload
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
