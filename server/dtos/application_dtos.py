from pydantic import BaseModel, ConfigDict, Field, EmailStr
from typing import Optional, List, Dict
from datetime import date, datetime
from enum import Enum


class ApplicationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    WAITLISTED = "waitlisted"


# Sections reject unknown field names so a misspelled field fails loudly
class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid", validate_assignment=True)


# ==================== Personal ====================

class Address(_Section):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = "India"
    zip_code: Optional[str] = None


class PersonalInfo(_Section):
    full_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    nationality: Optional[str] = "Indian"
    national_id_number: Optional[str] = None
    address: Address = Field(default_factory=Address)


# ==================== Academic ====================

class Institution(_Section):
    name: Optional[str] = None
    address: Optional[str] = None
    website: Optional[str] = None


class GPA(_Section):
    value: Optional[float] = None
    scale: str = "10.0"


class PreviousEducation(_Section):
    level: Optional[str] = None
    board: Optional[str] = None
    institution: Optional[str] = None
    passing_year: Optional[int] = None
    percentage: Optional[float] = None
    grade: Optional[str] = None


class AcademicInfo(_Section):
    education_level: Optional[str] = None
    course: Optional[str] = None
    institution: Institution = Field(default_factory=Institution)
    enrollment_number: Optional[str] = None
    field_of_study: Optional[str] = None
    current_gpa: GPA = Field(default_factory=GPA)
    current_semester: Optional[str] = None
    expected_graduation: Optional[str] = None
    previous_education: List[PreviousEducation] = Field(default_factory=list)


# ==================== Family & Financial ====================

class ParentInfo(_Section):
    name: Optional[str] = None
    occupation: Optional[str] = None
    income: Optional[float] = None
    employer: Optional[str] = None
    phone_number: Optional[str] = None


class BankDetails(_Section):
    account_holder_name: Optional[str] = None
    account_number: Optional[str] = None
    ifsc_code: Optional[str] = None
    bank_name: Optional[str] = None
    branch_name: Optional[str] = None


class FamilyFinancialInfo(_Section):
    father: ParentInfo = Field(default_factory=ParentInfo)
    mother: ParentInfo = Field(default_factory=ParentInfo)
    total_family_income: Optional[float] = None
    household_size: Optional[int] = None
    income_category: Optional[str] = Field(
        None, description="below_1_lakh, 1-3_lakhs, 3-5_lakhs, 5-10_lakhs, above_10_lakhs"
    )
    bank_details: BankDetails = Field(default_factory=BankDetails)


# ==================== Essays ====================

class Essays(_Section):
    statement_of_purpose: Optional[str] = None
    why_deserve_scholarship: Optional[str] = None
    career_goals: Optional[str] = None
    challenges: Optional[str] = None


# ==================== Documents ====================

class DocumentRef(BaseModel):
    """Minimal record of an uploaded file stored in a document slot."""
    filename: Optional[str] = None
    url: str = ""
    uploaded_at: Optional[datetime] = None


class ApplicationDocuments(_Section):
    id_proof: Optional[DocumentRef] = None
    photograph: Optional[DocumentRef] = None
    marksheets: List[Optional[DocumentRef]] = Field(default_factory=list, description="index 0 = 10th, index 1 = 12th")
    income_certificate: Optional[DocumentRef] = None
    caste_certificate: Optional[DocumentRef] = None
    recommendation_letters: List[Optional[DocumentRef]] = Field(default_factory=list)
    additional_documents: List[Optional[DocumentRef]] = Field(default_factory=list)


# ==================== Draft / Application ====================

class ApplicationDraft(BaseModel):
    """The in-progress application held by the wizard until submission."""
    model_config = ConfigDict(extra="forbid")

    personal_info: PersonalInfo = Field(default_factory=PersonalInfo)
    academic_info: AcademicInfo = Field(default_factory=AcademicInfo)
    family_financial_info: FamilyFinancialInfo = Field(default_factory=FamilyFinancialInfo)
    essays: Essays = Field(default_factory=Essays)
    documents: ApplicationDocuments = Field(default_factory=ApplicationDocuments)


class ApplicationCreate(ApplicationDraft):
    scholarship_id: str = Field(..., description="ID of the scholarship")
    # Ignored on create: the stored scholarship record supplies the name
    scholarship_name: Optional[str] = Field(None, description="Name of the scholarship")


class ApplicationUpdate(BaseModel):
    personal_info: Optional[PersonalInfo] = None
    academic_info: Optional[AcademicInfo] = None
    family_financial_info: Optional[FamilyFinancialInfo] = None
    essays: Optional[Essays] = None
    documents: Optional[ApplicationDocuments] = None


class StatusHistoryEntry(BaseModel):
    status: ApplicationStatus
    changed_by: Optional[str] = None
    reason: Optional[str] = None
    changed_at: datetime


class ApplicationResponse(ApplicationDraft):
    model_config = ConfigDict(extra="ignore")

    id: str
    scholarship_id: str
    scholarship_name: str
    applicant_id: str
    applicant_email: Optional[str] = None
    applicant_name: Optional[str] = None
    status: ApplicationStatus
    completion_percentage: int = 0
    submission_date: Optional[datetime] = None
    review_date: Optional[datetime] = None
    review_notes: Optional[str] = None
    reviewed_by: Optional[str] = None
    award_amount: Optional[float] = None
    viewed_by_admin: bool = False
    status_history: List[StatusHistoryEntry] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_count: int
    limit: int


class ApplicationListResponse(BaseModel):
    data: List[ApplicationResponse]
    pagination: Pagination


# ==================== Review ====================

class ReviewRequest(BaseModel):
    status: ApplicationStatus = Field(..., description="under_review, approved, rejected or waitlisted")
    review_notes: Optional[str] = Field(None, description="Required when rejecting")
    award_amount: Optional[float] = Field(None, ge=0, description="Only stored when approved")


class ApplicationStats(BaseModel):
    total: int
    by_status: Dict[str, int]


# ==================== Completeness ====================

class StepReport(BaseModel):
    step: int
    name: str
    complete: bool
    missing: List[str] = Field(default_factory=list)


class EssayWordCount(BaseModel):
    words: int
    max_words: int
    over_limit: bool


class CompletenessResponse(BaseModel):
    steps: List[StepReport]
    is_complete: bool
    completion_percentage: int
    essay_word_counts: Dict[str, EssayWordCount]


# ==================== Uploads ====================

class UploadResponse(BaseModel):
    slot_key: str
    filename: str
    url: str
    uploaded_at: datetime


class NotificationContext(BaseModel):
    """Context carried from a status change to the notification templates."""
    applicant_name: Optional[str] = None
    applicant_email: Optional[EmailStr] = None
    scholarship_name: Optional[str] = None
    application_id: Optional[str] = None
    status: Optional[str] = None
    review_notes: Optional[str] = None
    award_amount: Optional[float] = None
    review_date: Optional[str] = None
    completion_percentage: Optional[int] = None
