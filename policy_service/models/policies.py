from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from policy_service.core.frameworks import PolicyType
from policy_service.services.layout import LayoutMode


class PolicyFormData(BaseModel):
    """Generation request as submitted by the form.

    Fields are optional here so that missing values are reported by
    ``validate_policy_request`` as a 400 rather than a schema error.
    """

    model_config = ConfigDict(populate_by_name=True)

    organization_name: str | None = Field(None, alias="organizationName")
    framework: str | None = None
    constraints: str | None = None


class PolicySet(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_control: str = Field(alias="accessControl")
    acceptable_usage: str = Field(alias="acceptableUsage")
    incident_response: str = Field(alias="incidentResponse")

    def content_for(self, policy_type: PolicyType) -> str:
        return getattr(self, policy_type.field_name)


class ExportRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    organization_name: str | None = Field(None, alias="organizationName")
    framework: str | None = None
    policies: PolicySet | None = None
    mode: LayoutMode | None = None


class ErrorResponse(BaseModel):
    error: str
