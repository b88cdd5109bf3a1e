"""
Pydantic schemas for activity submission and validation.
"""

from pydantic import BaseModel, Field
from typing import Any, Optional, List


# ---- Submission ----
class FieldValueIn(BaseModel):
    key: str
    type: Optional[str] = None  # informational; the category schema decides
    value: Any = None


class CategoryValuesIn(BaseModel):
    categoryid: str = Field(alias="categoryId")
    fields: List[FieldValueIn] = []

    class Config:
        populate_by_name = True


class AktivitasSubmit(BaseModel):
    kegiatanid: Optional[str] = Field(default=None, alias="kegiatanId")
    activityname: Optional[str] = None
    activitycontent: Optional[str] = None
    values: List[CategoryValuesIn] = []

    class Config:
        populate_by_name = True


# ---- Validation ----
class ValidationToggle(BaseModel):
    field_value_id: str = Field(alias="fieldValueId")
    is_validated: bool = Field(alias="isValidated")

    class Config:
        populate_by_name = True
