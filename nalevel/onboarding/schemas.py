"""Request bodies validated on each onboarding stage."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from nalevel.onboarding.stages import OnboardingStage
from nalevel.users.models import UserRole


class StageForm(BaseModel):
    """Base for stage payloads; unknown fields are rejected."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RoleSelectionForm(StageForm):
    roles: list[UserRole] = Field(min_length=1)

    @field_validator("roles")
    @classmethod
    def _dedupe_roles(cls, roles: list[UserRole]) -> list[UserRole]:
        return list(dict.fromkeys(roles))


class BasicInfoForm(StageForm):
    first_name: str = Field(min_length=1, alias="firstName")
    last_name: str = Field(min_length=1, alias="lastName")
    location: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[str] = Field(default=None, alias="dateOfBirth")
    bio: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=18)
    sex: Optional[Literal["male", "female", "other"]] = None


class RoleDetailsForm(StageForm):
    primary_role: UserRole = Field(alias="primaryRole")
    secondary_roles: list[UserRole] = Field(default_factory=list, alias="secondaryRoles")
    skills: list[str] = Field(default_factory=list)
    experience_level: Optional[Literal["beginner", "intermediate", "expert"]] = Field(
        default=None,
        alias="experienceLevel",
    )


class VerificationForm(StageForm):
    identification_type: Optional[Literal["id-card", "passport", "driver-license"]] = Field(
        default=None,
        alias="identificationType",
    )
    identification_number: Optional[str] = Field(default=None, min_length=2, alias="identificationNumber")
    issuing_authority: Optional[str] = Field(default=None, min_length=2, alias="issuingAuthority")
    date_of_issue: Optional[str] = Field(default=None, min_length=2, alias="dateOfIssue")
    expiry_date: Optional[str] = Field(default=None, min_length=2, alias="expiryDate")
    proof_of_address: Optional[str] = Field(default=None, alias="proofOfAddress")

    @field_validator("proof_of_address")
    @classmethod
    def _check_url(cls, value: Optional[str]) -> Optional[str]:
        if value and not value.startswith(("http://", "https://")):
            raise ValueError("Must be a valid URL")
        return value


STAGE_FORMS: dict[OnboardingStage, type[StageForm]] = {
    OnboardingStage.ROLE_SELECTION: RoleSelectionForm,
    OnboardingStage.BASIC_INFO: BasicInfoForm,
    OnboardingStage.ROLE_DETAILS: RoleDetailsForm,
    OnboardingStage.VERIFICATION: VerificationForm,
}
