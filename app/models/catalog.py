"""Customer, case and phase catalog model definitions."""
from typing import Optional

from pydantic import BaseModel, Field


class Customer(BaseModel):
    """Customer billed for work on its cases."""

    id: str = Field(alias="_id", serialization_alias="id")
    name: str = ""
    active: bool = True

    model_config = {"populate_by_name": True}


class Case(BaseModel):
    """Customer case (project). Carries the minimum billing policy."""

    id: str = Field(alias="_id", serialization_alias="id")
    name: str = ""
    customer_id: Optional[str] = None
    closed: bool = False
    min_billable_time_in_min: int = 0

    model_config = {"populate_by_name": True}


class Phase(BaseModel):
    """Phase of a case. Hour entries are logged against phases."""

    id: str = Field(alias="_id", serialization_alias="id")
    name: str = ""
    case_id: Optional[str] = None
    completed: bool = False
    locked: bool = False

    model_config = {"populate_by_name": True}


class Worktype(BaseModel):
    """Kind of work performed."""

    id: str = Field(alias="_id", serialization_alias="id")
    name: str = ""
    active: bool = True

    model_config = {"populate_by_name": True}


class CaseConfig(BaseModel):
    """Minimum billing configuration of a case. Zero disables the rule."""

    case_id: str
    min_billable_time_in_min: int = 0
