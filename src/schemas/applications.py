from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional


# Flat field names as sent on the wire by the application form
REQUIRED_FIELDS: tuple[str, ...] = (
    "firstName", "lastName", "email", "phone", "dob", "gender",
    "idNumber", "address", "city", "county",
    "emergencyName", "emergencyPhone", "relationship",
    "lastSchool", "graduationYear", "qualification",
    "programme", "programmeLevel", "startDate",
    "disabilityType", "signLanguage", "currentEmployment",
    "motivation", "goals",
)

OPTIONAL_FIELDS: tuple[str, ...] = (
    "postalCode", "certificates", "supportNeeds",
    "jobTitle", "workExperience", "referral",
)

PROGRAMMES: dict[str, str] = {
    "electrical": "Electrical Installation & Maintenance",
    "plumbing": "Plumbing & Pipe Fitting",
    "carpentry": "Carpentry & Joinery",
    "masonry": "Masonry & Concrete Work",
    "welding": "Welding & Metal Fabrication",
    "motor": "Motor Vehicle Mechanics",
    "hospitality": "Hospitality & Catering",
    "ict": "Information & Communication Technology",
    "business": "Business Studies",
    "tailoring": "Tailoring & Fashion Design",
}


def programme_name(key: str) -> str:
    """Display name for a programme key, falling back to the key itself"""
    return PROGRAMMES.get(key, key)


class RecordBlock(BaseModel):
    """Base for record blocks serialized with camelCase keys"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PersonalInfo(RecordBlock):
    first_name: str
    last_name: str
    email: str
    phone: str
    date_of_birth: str
    gender: str
    id_number: str


class AddressInfo(RecordBlock):
    address: str
    city: str
    county: str
    postal_code: str = ""


class EmergencyContact(RecordBlock):
    name: str
    phone: str
    relationship: str


class Education(RecordBlock):
    last_school: str
    graduation_year: int
    qualification: str
    certificates: str = ""


class ProgrammeInfo(RecordBlock):
    programme: str
    level: str
    start_date: str


class DisabilityInfo(RecordBlock):
    disability_type: str = Field(..., alias="type")
    support_needs: str = ""
    sign_language_experience: str


class Employment(RecordBlock):
    status: str
    job_title: str = ""
    years_of_experience: int = 0


class AdditionalInfo(RecordBlock):
    motivation: str
    goals: str
    referral: str = ""


class ApplicationRecord(RecordBlock):
    """Canonical stored form of an accepted application"""

    reference_number: str
    submitted_at: str
    personal_info: PersonalInfo
    address_info: AddressInfo
    emergency_contact: EmergencyContact
    education: Education
    programme_info: ProgrammeInfo
    disability_info: DisabilityInfo
    employment: Employment
    additional_info: AdditionalInfo

    def to_storage(self) -> dict:
        """Serialize with the camelCase keys used in storage"""
        return self.model_dump(by_alias=True)


class SubmissionResponse(BaseModel):
    """Response envelope for POST /submit"""

    model_config = ConfigDict(populate_by_name=True)

    success: bool
    message: str
    reference_number: Optional[str] = Field(None, alias="referenceNumber")
    errors: Optional[list[str]] = None
    error: Optional[str] = None


class ProgrammeOption(BaseModel):
    key: str
    name: str


class ProgrammeList(BaseModel):
    programmes: list[ProgrammeOption]
