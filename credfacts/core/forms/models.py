from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class FormFieldType(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    NUMBER = "number"
    TELEPHONE = "tel"
    CHECKBOX = "checkbox"


class FormField(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1, max_length=256)  # directory attribute name
    label: str = ""
    type: FormFieldType = FormFieldType.TEXT
    required: bool = False
    read_only: bool = False
    minimum_length: int = Field(default=0, ge=0)
    maximum_length: int = Field(default=255, ge=0)
    regex: Optional[str] = None
    regex_error: str = ""
