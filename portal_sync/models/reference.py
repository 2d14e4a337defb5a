# Reference Models
"""Pydantic models for subunits and auxiliary reference data."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .content import SubunitScope


class Subunit(BaseModel):
    """A sector or subsector: identity anchor for every collection."""

    model_config = ConfigDict(extra="ignore")

    id: str
    scope: SubunitScope = SubunitScope.SUBSECTOR
    name: str = ""
    description: Optional[str] = None
    sector_id: Optional[str] = None
    sector_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    subsectors: List["Subunit"] = Field(
        default_factory=list,
        description="Child subsectors, loaded for sector scope only",
    )

    @classmethod
    def from_row(cls, row: Dict[str, Any], scope: SubunitScope) -> "Subunit":
        """
        Build a subunit from a backend row.

        Subsector rows embed their parent sector as ``sectors`` (object or
        single-element list); its name becomes ``sector_name``.
        """
        data = dict(row)
        parent = data.pop("sectors", None)
        if isinstance(parent, list):
            parent = parent[0] if parent else None
        if isinstance(parent, dict) and not data.get("sector_name"):
            data["sector_name"] = parent.get("name")
        data["scope"] = scope
        return cls.model_validate(data)


Subunit.model_rebuild()


class WorkLocation(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    city: Optional[str] = None
    state: Optional[str] = None
    created_at: Optional[datetime] = None


class UserProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    full_name: str = ""
    email: str = ""
    role: Optional[str] = None
    work_location_id: Optional[str] = None


class PositionOption(BaseModel):
    """Selectable option shown by user filters."""

    id: str
    label: str
    value: str
    meta: Dict[str, Any] = Field(default_factory=dict)


class Position(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    department: Optional[str] = None

    @property
    def label(self) -> str:
        if self.department:
            return f"{self.name} - {self.department}"
        return self.name

    def to_option(self) -> PositionOption:
        return PositionOption(
            id=self.id,
            label=self.label,
            value=self.id,
            meta=self.model_dump(),
        )


class Group(BaseModel):
    """Notification group. Automatic groups are derived from work locations."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: Optional[str] = None
    color_theme: Optional[str] = None
    user_ids: List[str] = Field(default_factory=list)
    sector_id: Optional[str] = None
    subsector_id: Optional[str] = None
    is_automatic: bool = False
    created_at: Optional[datetime] = None


class TeamMember(BaseModel):
    """Membership of a user in a subunit's team, with an optional position."""

    model_config = ConfigDict(extra="ignore")

    id: str
    user_id: str
    sector_id: Optional[str] = None
    subsector_id: Optional[str] = None
    position: Optional[str] = None
    is_from_subsector: bool = False
    full_name: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TeamMember":
        """Flatten the embedded ``profiles`` object into name and email."""
        data = dict(row)
        profile = data.pop("profiles", None)
        if isinstance(profile, list):
            profile = profile[0] if profile else None
        if isinstance(profile, dict):
            data.setdefault("full_name", profile.get("full_name"))
            data.setdefault("email", profile.get("email"))
        return cls.model_validate(data)


# Notification types accepted when sending a group message
MESSAGE_TYPES = ("info", "success", "warning", "error", "system")


class GroupMessage(BaseModel):
    """Notification sent to every member of a group."""

    title: str
    content: str
    type: str = Field(default="info", description="info, success, warning, error or system")
    group_id: str
    user_ids: List[str] = Field(default_factory=list)
    expire_at: Optional[datetime] = None
    links: List[Dict[str, Any]] = Field(default_factory=list)
    sector_id: Optional[str] = None
    subsector_id: Optional[str] = None
