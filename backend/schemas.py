from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional, List

EMAIL_PATTERN = r"^\w+([.+-]?\w+)*@\w+([.-]?\w+)*(\.\w{2,})+$"
MOBILE_PATTERN = r"^\+[1-9]\d{1,14}$"

class RegisterPayload(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    email: str = Field(pattern=EMAIL_PATTERN)
    password: str = Field(min_length=6, max_length=128)

    @field_validator("name", "email", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

class LoginPayload(BaseModel):
    email: str
    password: str

class AgentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    email: str = Field(pattern=EMAIL_PATTERN)
    mobile: str = Field(pattern=MOBILE_PATTERN)
    password: str = Field(min_length=6, max_length=128)

    @field_validator("name", "email", "mobile", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

class AgentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    email: Optional[str] = Field(None, pattern=EMAIL_PATTERN)
    mobile: Optional[str] = Field(None, pattern=MOBILE_PATTERN)

    @field_validator("name", "email", "mobile", mode="before")
    @classmethod
    def strip_text(cls, v):
        return v.strip() if isinstance(v, str) else v

class AgentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    email: str
    mobile: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    email: str
    role: str

class SampleRecord(BaseModel):
    id: Optional[int] = None
    first_name: str
    phone: str
    notes: str = ""

class AgentDistribution(BaseModel):
    agent_id: int
    agent_name: str
    agent_email: str
    agent_mobile: Optional[str] = None
    record_count: int
    sample_records: List[SampleRecord]

class UploadSummary(BaseModel):
    total_records: int
    validation_errors: List[str]
    distribution: List[AgentDistribution]

class UploadResponse(BaseModel):
    success: bool = True
    message: str
    summary: UploadSummary
