from typing import Literal

from pydantic import BaseModel, Field


class ReportModel(BaseModel):
    report_type: Literal['error', 'feature'] = Field(..., description='Kind of report', examples=['error'])
    name: str | None = Field(None, description='Reporter display name', examples=['Jane'])
    text: str = Field(..., description='Report body', examples=['The search endpoint returns 500'])


class BlacklistEntryModel(BaseModel):
    ip: str = Field(..., min_length=2, max_length=64, description='IP address to block', examples=['203.0.113.7'])
