# selffin/models.py

from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class DependencyType(str, Enum):
    FS = "FS"  # finish-to-start
    SS = "SS"  # start-to-start
    FF = "FF"  # finish-to-finish
    SF = "SF"  # start-to-finish


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    DELAYED = "delayed"


class Dependency(BaseModel):
    task_id: str
    type: DependencyType = DependencyType.FS
    lag_days: float = 0.0


class Task(BaseModel):
    id: str
    name: str
    category: str = "general"
    space: Optional[str] = None
    # catalogue space id; differs from space for a repeated room ("bathroom" vs "bathroom_2")
    space_type: Optional[str] = None
    duration: float = Field(ge=0)
    dependencies: List[Dependency] = Field(default_factory=list)
    status: TaskStatus = TaskStatus.PENDING
    progress: float = Field(default=0.0, ge=0, le=100)
    is_milestone: bool = False
    weather_dependent: bool = False
    diy_possible: bool = False
    estimated_cost: float = 0.0
    noise_level: str = "none"
    dust_level: str = "none"
    specialists: List[str] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("dependencies", mode="before")
    @classmethod
    def _coerce_dependencies(cls, value):
        # a bare id is shorthand for a zero-lag finish-to-start link
        if value is None:
            return []
        return [{"task_id": v} if isinstance(v, str) else v for v in value]

    @property
    def predecessor_ids(self) -> List[str]:
        return [d.task_id for d in self.dependencies]


class ScheduledTask(Task):
    early_start: float = 0.0
    early_finish: float = 0.0
    late_start: float = 0.0
    late_finish: float = 0.0
    slack: float = 0.0
    is_critical: bool = False
    color: str = "#6b7280"


class ScheduleInsights(BaseModel):
    complexity: float = 0.0
    parallel_opportunities: int = 0
    bottlenecks: List[str] = Field(default_factory=list)
    budget_impact: float = 60.0
    critical_ratio: float = 0.0


class ScheduleData(BaseModel):
    tasks: List[ScheduledTask] = Field(default_factory=list)
    critical_path: List[str] = Field(default_factory=list)
    total_duration: float = 0.0
    total_calendar_days: int = 0
    start_date: date
    end_date: date
    total_cost: float = 0.0
    warnings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    insights: ScheduleInsights = Field(default_factory=ScheduleInsights)

    def task(self, task_id: str) -> Optional[ScheduledTask]:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None


class HousingType(str, Enum):
    APARTMENT = "apartment"
    HOUSE = "house"
    VILLA = "villa"
    OFFICETEL = "officetel"


class ResidenceStatus(str, Enum):
    OCCUPIED = "occupied"
    EMPTY = "empty"
    MOVING_IN = "moving_in"


class ProjectBasicInfo(BaseModel):
    total_area: float = Field(ge=1, le=1000)  # pyeong
    housing_type: HousingType = HousingType.APARTMENT
    building_age: Optional[int] = Field(default=None, ge=0)
    residence_status: ResidenceStatus = ResidenceStatus.EMPTY
    preferred_style: str = "modern"
    project_duration_days: int = Field(default=30, gt=0)
    budget: Optional[float] = Field(default=None, gt=0)


class SpaceSelection(BaseModel):
    id: str
    name: Optional[str] = None
    actual_area: Optional[float] = Field(default=None, ge=1, le=100)
    scope: str = "full"  # "full" or "partial"
    priority: int = Field(default=3, ge=1, le=5)


WEEKDAY_NAMES = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]


class ScheduleInfo(BaseModel):
    start_date: date
    work_days: List[str] = Field(default_factory=lambda: ["mon", "tue", "wed", "thu", "fri"])
    holidays: List[date] = Field(default_factory=list)
    public_holidays: bool = False  # add fixed-date Korean public holidays

    @field_validator("work_days")
    @classmethod
    def _known_days(cls, value):
        days = [v.strip().lower()[:3] for v in value]
        unknown = [d for d in days if d not in WEEKDAY_NAMES]
        if unknown:
            raise ValueError(f"unknown work days: {unknown}")
        return days


class ExpertiseLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    EXPERT = "expert"


class UserExpertise(BaseModel):
    level: ExpertiseLevel = ExpertiseLevel.INTERMEDIATE
    years_of_experience: float = Field(default=0, ge=0)
    projects_completed: int = Field(default=0, ge=0)
    average_delay_rate: float = Field(default=0.0, ge=0)
    specialties: List[str] = Field(default_factory=list)


class Season(str, Enum):
    SPRING = "spring"
    SUMMER = "summer"
    FALL = "fall"
    WINTER = "winter"


class EnvironmentFactors(BaseModel):
    season: Season = Season.SPRING
    rain_probability: float = Field(default=0.0, ge=0, le=1)
    temperature: float = 20.0
    humidity: float = Field(default=50.0, ge=0, le=100)
    building_age: int = Field(default=0, ge=0)
    floor_level: int = Field(default=1, ge=0)
    access_restrictions: bool = False


class ProjectStatus(str, Enum):
    DRAFT = "draft"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    IN_PROGRESS = "in_progress"


class ProjectRequest(BaseModel):
    """Payload used to create a project or to plan one without storing it."""
    name: str = Field(min_length=1)
    basic_info: ProjectBasicInfo
    spaces: List[SpaceSelection] = Field(min_length=1)
    schedule_info: ScheduleInfo
    expertise: Optional[UserExpertise] = None
    environment: Optional[EnvironmentFactors] = None


class Project(ProjectRequest):
    id: str
    status: ProjectStatus = ProjectStatus.DRAFT
    created_at: datetime
    updated_at: datetime


class HistogramBin(BaseModel):
    day: int
    count: int


class CompletionProbability(BaseModel):
    days: int
    probability: float


class TaskRisk(BaseModel):
    task_id: str
    task_name: str
    risk_level: str
    variability: float  # coefficient of variation, percent
    criticality: float


class RiskFactor(BaseModel):
    type: str
    impact: float
    probability: float
    mitigation: str


class SimulationResult(BaseModel):
    iterations: int
    seed: Optional[int] = None
    distribution: str = "pert"
    planned_duration: float
    mean: float
    std_dev: float
    min_duration: float
    max_duration: float
    percentiles: Dict[str, float]
    confidence90: Dict[str, float]
    histogram: List[HistogramBin]
    confidence: float
    completion_probabilities: List[CompletionProbability]
    criticality: Dict[str, float]
    high_risk_tasks: List[TaskRisk] = Field(default_factory=list)
    risk_factors: List[RiskFactor] = Field(default_factory=list)
    total_risk_score: float = 0.0
    buffer_days: float = 0.0
    recommendations: List[str] = Field(default_factory=list)


class ScenarioAdjustments(BaseModel):
    task_delays: Dict[str, float] = Field(default_factory=dict)  # task id, category or space
    global_delay: float = 0.0  # percent
    resource_boost: float = 0.0  # percent, negative shortens
    weather_impact: float = 0.0  # percent, weather-dependent tasks only


class WhatIfScenario(BaseModel):
    id: str
    title: str
    description: str = ""
    adjustments: ScenarioAdjustments = Field(default_factory=ScenarioAdjustments)


class ScenarioAnalysis(BaseModel):
    scenario_id: str
    original_duration: float
    new_duration: float
    p50: float
    impact: float  # percent change of P50 over the original duration
    critical_tasks: List[str]
    recommendations: List[str] = Field(default_factory=list)


class ScenarioTask(BaseModel):
    id: str
    name: str
    duration: float
    estimated_cost: float


class PlanScenario(BaseModel):
    type: str  # optimistic, realistic, conservative
    title: str
    description: str
    duration: float
    end_date: date
    cost: float
    reliability: int
    risk_level: str
    tasks: List[ScenarioTask] = Field(default_factory=list)
    highlights: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class WeekPlan(BaseModel):
    week: int
    title: str
    start_date: date
    end_date: date
    tasks: List[str]
    cost: float
    contractor: bool
    specialists: List[str] = Field(default_factory=list)
    tips: List[str] = Field(default_factory=list)


class WeeklyPlan(BaseModel):
    total_weeks: int
    total_budget: float
    schedule: List[WeekPlan]
    summary: str
