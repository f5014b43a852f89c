from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class FilterConfigModel(BaseModel):
    search: str = ""
    capabilities: List[str] = Field(default_factory=list)
    materials: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)
    states: List[str] = Field(default_factory=list)
    employee_range: str = "all"
    revenue_range: str = "all"
    capacity_range: str = "all"
    rating_range: str = "all"
    diversity_flag: Optional[bool] = None
    sustainability_min: float = 0
    year_established_range: str = "all"


class SortModel(BaseModel):
    key: Optional[str] = None
    direction: Literal["asc", "desc"] = "asc"


class TableRequest(BaseModel):
    filters: FilterConfigModel = Field(default_factory=FilterConfigModel)
    sort: SortModel = Field(default_factory=SortModel)
    page: int = 1
    page_size: int = 25
    selected_ids: List[str] = Field(default_factory=list)


class SelectionRequest(BaseModel):
    action: Literal["toggle", "toggle_visible", "select_visible", "deselect_visible", "clear"]
    selected_ids: List[str] = Field(default_factory=list)
    record_id: Optional[str] = None
    visible_ids: List[str] = Field(default_factory=list)


class ExportRequest(BaseModel):
    selected_ids: List[str] = Field(default_factory=list)


class SearchFiltersModel(BaseModel):
    capabilities: List[str] = Field(default_factory=list)
    materials: List[str] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)
    max_distance: float = 500
    min_moq: int = 0
    max_moq: int = 100_000
    max_lead_time: int = 365
    min_rating: float = 0
    diversity_flag: Optional[bool] = None
    min_capacity: Optional[float] = None


class QuickSearchRequest(BaseModel):
    filters: SearchFiltersModel = Field(default_factory=SearchFiltersModel)
    query: str = ""


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    email: str
    password: str
    first_name: str
    last_name: str
    role: Literal["founder", "procurement_manager"] = "founder"
    company: Optional[str] = None
    phone: Optional[str] = None


class VerifyRequest(BaseModel):
    token: str


class ResendVerificationRequest(BaseModel):
    email: str


class DeleteAccountRequest(BaseModel):
    reason: str
    confirmation: str


class ProfileUpdateRequest(BaseModel):
    changes: Dict[str, Any] = Field(default_factory=dict)
