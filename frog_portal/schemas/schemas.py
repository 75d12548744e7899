"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator
from typing import Optional, List, Any, Dict
from datetime import datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    user = "user"
    admin = "admin"


class MigrationGoal(str, Enum):
    overseas_job = "overseas_job"
    improve_language = "improve_language"
    career_change = "career_change"
    find_new_home = "find_new_home"


class ApplicationStatus(str, Enum):
    draft = "draft"
    submitted = "submitted"
    reviewing = "reviewing"
    approved = "approved"
    rejected = "rejected"


class AdminApplicationStatus(str, Enum):
    reviewing = "reviewing"
    approved = "approved"
    rejected = "rejected"


class DocumentType(str, Enum):
    passport = "passport"
    resume = "resume"
    certificate = "certificate"
    other = "other"


class DocumentStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class VisaReviewStatus(str, Enum):
    pending = "pending"
    completed = "completed"
    cancelled = "cancelled"


class ScheduleAction(str, Enum):
    toggle_completed = "toggle_completed"
    update_date = "update_date"


class CourseSort(str, Enum):
    name_asc = "name_asc"
    name_desc = "name_desc"
    price_asc = "price_asc"
    price_desc = "price_desc"
    duration_asc = "duration_asc"
    duration_desc = "duration_desc"


# ============================================================
# AUTH SCHEMAS
# ============================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: str

class UserResponse(BaseModel):
    user_id: int
    email: str
    role: str
    is_active: bool
    created_at: datetime

class AdminCheckResponse(BaseModel):
    is_admin: bool


# ============================================================
# PROFILE SCHEMAS
# ============================================================

class ProfileUpdate(BaseModel):
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    current_occupation: Optional[str] = Field(None, max_length=200)
    future_occupation: Optional[int] = None
    english_level: Optional[str] = None

class OnboardingRequest(BaseModel):
    migration_goal: MigrationGoal
    english_level: str
    work_experience: str
    working_holiday: str
    age_range: str
    abroad_timing: str
    support_needed: str

class ProfileResponse(BaseModel):
    user_id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
    migration_goal: Optional[str] = None
    english_level: Optional[str] = None
    current_occupation: Optional[str] = None
    future_occupation: Optional[int] = None
    work_experience: Optional[str] = None
    working_holiday: Optional[str] = None
    age_range: Optional[str] = None
    abroad_timing: Optional[str] = None
    support_needed: Optional[str] = None
    onboarding_completed: bool = False
    is_member: bool = False
    subscription_status: Optional[str] = None
    subscription_period_end: Optional[datetime] = None
    onboarding_progress: int = 0
    profile_completion: int = 0


# ============================================================
# CATALOGUE SCHEMAS
# ============================================================

class IntakeDateCreate(BaseModel):
    month: int = Field(..., ge=1, le=12)
    day: Optional[int] = Field(None, ge=1, le=31)
    year: Optional[int] = Field(None, ge=2000, le=2100)
    start_date: Optional[str] = Field(None, pattern=r"^\d{4}-\d{2}-\d{2}$")
    is_tentative: bool = True
    notes: Optional[str] = None

class IntakeDateResponse(BaseModel):
    intake_date_id: int
    course_id: int
    month: int
    day: Optional[int] = None
    year: Optional[int] = None
    start_date: Optional[str] = None
    is_tentative: bool = True
    notes: Optional[str] = None

class LocationResponse(BaseModel):
    location_id: int
    country: str
    city: Optional[str] = None

class PhotoCreate(BaseModel):
    image_url: str = Field(..., min_length=1)
    description: Optional[str] = None
    course_id: Optional[int] = None

class PhotoResponse(BaseModel):
    photo_id: int
    school_id: int
    course_id: Optional[int] = None
    image_url: str
    description: Optional[str] = None
    created_at: datetime

class SubjectCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None

class SubjectResponse(BaseModel):
    subject_id: int
    course_id: int
    title: str
    description: Optional[str] = None

class JobPositionResponse(BaseModel):
    job_position_id: int
    title: str
    industry: Optional[str] = None

class CourseSummary(BaseModel):
    course_id: int
    school_id: int
    name: str
    category: Optional[str] = None
    description: Optional[str] = None
    total_weeks: Optional[int] = None
    lecture_weeks: Optional[int] = None
    work_permit_weeks: Optional[int] = None
    tuition_and_others: Optional[str] = None
    tuition_label: Optional[str] = None
    school_name: Optional[str] = None
    location_id: Optional[int] = None
    country: Optional[str] = None
    city: Optional[str] = None
    image_url: Optional[str] = None
    intake_dates: List[IntakeDateResponse] = []
    intake_months: str = "要問合せ"
    is_favorite: bool = False
    accepts_online_application: bool = False

class CourseListResponse(BaseModel):
    courses: List[CourseSummary]
    total: int
    active_filter_count: int = 0

class CourseDetail(CourseSummary):
    url: Optional[str] = None
    admission_requirements: Optional[str] = None
    graduation_requirements: Optional[str] = None
    job_support: Optional[str] = None
    notes: Optional[str] = None
    start_date: Optional[str] = None
    subjects: List[SubjectResponse] = []
    photos: List[PhotoResponse] = []
    job_positions: List[JobPositionResponse] = []

class EditorCourseCreate(BaseModel):
    """Course fields a school editor may write. Unknown fields are rejected."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=200)
    category: Optional[str] = None
    description: Optional[str] = None
    total_weeks: Optional[int] = Field(None, ge=0)
    lecture_weeks: Optional[int] = Field(None, ge=0)
    work_permit_weeks: Optional[int] = Field(None, ge=0)
    tuition_and_others: Optional[str] = None
    url: Optional[str] = None
    admission_requirements: Optional[str] = None
    graduation_requirements: Optional[str] = None
    job_support: Optional[str] = None
    notes: Optional[str] = None
    start_date: Optional[str] = None
    migration_goals: Optional[List[MigrationGoal]] = None

class EditorCourseUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = None
    description: Optional[str] = None
    total_weeks: Optional[int] = Field(None, ge=0)
    lecture_weeks: Optional[int] = Field(None, ge=0)
    work_permit_weeks: Optional[int] = Field(None, ge=0)
    tuition_and_others: Optional[str] = None
    url: Optional[str] = None
    admission_requirements: Optional[str] = None
    graduation_requirements: Optional[str] = None
    job_support: Optional[str] = None
    notes: Optional[str] = None
    start_date: Optional[str] = None
    migration_goals: Optional[List[MigrationGoal]] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value):
        # omitted is fine, an explicit null is not
        if value is None:
            raise ValueError("コース名は空にできません")
        return value

class CourseCreate(EditorCourseCreate):
    """Admin course fields: the editor's plus the application form template."""
    content_snare_template_id: Optional[str] = None

class CourseUpdate(EditorCourseUpdate):
    content_snare_template_id: Optional[str] = None

class SchoolSummary(BaseModel):
    school_id: int
    name: str
    website: Optional[str] = None
    description: Optional[str] = None
    location_id: Optional[int] = None
    country: Optional[str] = None
    city: Optional[str] = None
    course_count: int = 0

class SchoolDetail(SchoolSummary):
    categories: List[str] = []
    photos: List[PhotoResponse] = []
    courses: List[CourseSummary] = []

class FavoriteToggleResponse(BaseModel):
    is_favorite: bool

class JobPositionLinks(BaseModel):
    job_position_ids: List[int]

class JobPositionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    industry: Optional[str] = Field(None, max_length=100)

class SchoolCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    goal_location_id: Optional[int] = None
    website: Optional[str] = None
    description: Optional[str] = None

class SchoolUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    goal_location_id: Optional[int] = None
    website: Optional[str] = None
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value):
        if value is None:
            raise ValueError("学校名は空にできません")
        return value


# ============================================================
# COURSE APPLICATION SCHEMAS
# ============================================================

class CourseApplicationCreate(BaseModel):
    course_id: Optional[int] = None
    client_id: Optional[str] = None
    intake_date_id: Optional[int] = None

class CourseApplicationCreated(BaseModel):
    request_id: str
    share_link: Optional[str] = None
    application_id: int
    success: bool = True

class StatusBadge(BaseModel):
    variant: str
    label: str

class CourseApplicationResponse(BaseModel):
    application_id: int
    course_id: int
    course_name: Optional[str] = None
    school_name: Optional[str] = None
    status: str
    status_label: str
    status_badge: StatusBadge
    content_snare_request_id: Optional[str] = None
    request_url: Optional[str] = None
    admin_notes: Optional[str] = None
    intake_date: Optional[IntakeDateResponse] = None
    created_at: datetime
    updated_at: datetime
    created_at_label: str = ""

class ApplicationStatusResponse(BaseModel):
    application_id: int
    status: str
    content_snare_request_id: Optional[str] = None

class ApplicationStatusUpdate(BaseModel):
    status: AdminApplicationStatus
    admin_notes: Optional[str] = None

class FormProgress(BaseModel):
    total_fields: int
    done_fields: int
    percent: int
    completed_sections: int
    total_sections: int
    color: str

class FormStatusResponse(BaseModel):
    request_id: str
    status: Optional[str] = None
    share_link: Optional[str] = None
    progress: FormProgress
    pages: List[Dict[str, Any]] = []
    sections: List[Dict[str, Any]] = []

class DocumentCreate(BaseModel):
    file_id: int
    document_type: DocumentType

class DocumentStatusUpdate(BaseModel):
    status: DocumentStatus

class DocumentResponse(BaseModel):
    document_id: int
    application_id: int
    file_id: int
    document_type: str
    status: str
    file_name: Optional[str] = None
    file_url: Optional[str] = None
    status_badge: StatusBadge
    created_at: datetime
    created_at_label: str = ""

class UserFileResponse(BaseModel):
    file_id: int
    name: str
    url: str
    size: int
    size_label: str
    content_type: Optional[str] = None
    created_at: datetime
    created_at_label: str = ""


# ============================================================
# SCHEDULE SCHEMAS
# ============================================================

class ScheduleCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    year: int = Field(..., ge=2000, le=2100)
    month: int = Field(..., ge=1, le=12)
    day: Optional[int] = Field(None, ge=1, le=31)
    is_completed: bool = False
    is_admin_locked: bool = False
    sort_order: int = 0

class ScheduleActionRequest(BaseModel):
    action: ScheduleAction
    completed: Optional[bool] = None
    year: Optional[int] = Field(None, ge=2000, le=2100)
    month: Optional[int] = Field(None, ge=1, le=12)
    day: Optional[int] = Field(None, ge=1, le=31)

class ScheduleResponse(BaseModel):
    schedule_id: int
    application_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    year: int
    month: int
    day: Optional[int] = None
    is_completed: bool
    is_admin_locked: bool
    sort_order: int


# ============================================================
# VISA SCHEMAS
# ============================================================

class VisaRequirementIn(BaseModel):
    description: str = Field(..., min_length=1)
    additional_info: Optional[str] = None

class VisaRequirementResponse(BaseModel):
    requirement_id: int
    visa_type_id: int
    description: str
    additional_info: Optional[str] = None
    order_index: int

class VisaTypeResponse(BaseModel):
    visa_type_id: int
    name: str
    description: Optional[str] = None
    country: Optional[str] = None
    requirements: List[VisaRequirementResponse] = []

class VisaTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    country: Optional[str] = Field(None, max_length=100)
    requirements: List[VisaRequirementIn] = []

class VisaTypeUpdate(BaseModel):
    """Omitted requirements stay as they are; a list replaces them in order."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    country: Optional[str] = Field(None, max_length=100)
    requirements: Optional[List[VisaRequirementIn]] = None

    @field_validator("name")
    @classmethod
    def name_not_null(cls, value):
        if value is None:
            raise ValueError("ビザ名は空にできません")
        return value

class VisaPlanItemIn(BaseModel):
    visa_type_id: int
    notes: Optional[str] = None

class VisaPlanCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    items: List[VisaPlanItemIn] = []

class VisaPlanItemsUpdate(BaseModel):
    items: List[VisaPlanItemIn]

class VisaPlanItemResponse(BaseModel):
    item_id: int
    visa_type_id: int
    visa_type_name: str
    order_index: int
    notes: Optional[str] = None

class VisaStep(BaseModel):
    step: int
    state: str

class VisaStepProgress(BaseModel):
    percent: float
    steps: List[VisaStep]

class VisaPlanResponse(BaseModel):
    plan_id: int
    name: str
    description: Optional[str] = None
    status: str
    items: List[VisaPlanItemResponse] = []
    progress: VisaStepProgress
    created_at: datetime
    updated_at: datetime

class VisaReviewUpdate(BaseModel):
    status: VisaReviewStatus
    reviewer_notes: Optional[str] = None

class VisaReviewResponse(BaseModel):
    review_id: int
    plan_id: int
    reviewer_id: Optional[int] = None
    status: str
    reviewer_notes: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

class CountResponse(BaseModel):
    count: int


# ============================================================
# SUBSCRIPTION SCHEMAS
# ============================================================

class UrlResponse(BaseModel):
    url: str

class SubscriptionStatusResponse(BaseModel):
    is_member: bool
    subscription_status: Optional[str] = None
    subscription_period_end: Optional[datetime] = None


# ============================================================
# LEARNING SCHEMAS
# ============================================================

class LearningResource(BaseModel):
    resource_id: int
    title: str
    url: Optional[str] = None

class LearningVideo(BaseModel):
    video_id: int
    title: str
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration_seconds: Optional[int] = None
    locked: bool = False
    progress_seconds: int = 0
    completed: bool = False
    resources: List[LearningResource] = []

class LearningSection(BaseModel):
    section_id: int
    title: str
    description: Optional[str] = None
    videos: List[LearningVideo] = []

class LearningResponse(BaseModel):
    is_member: bool
    sections: List[LearningSection]
    completed_videos: int
    total_videos: int

class VideoProgressUpdate(BaseModel):
    progress_seconds: int = Field(..., ge=0)
    completed: bool = False

class SectionCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    order_index: int = 0

class SectionUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    order_index: Optional[int] = None

    @field_validator("title", "order_index")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("空にできません")
        return value

class SectionResponse(BaseModel):
    section_id: int
    title: str
    description: Optional[str] = None
    order_index: int

class VideoCreate(BaseModel):
    section_id: int
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration_seconds: Optional[int] = Field(None, ge=0)
    order_index: int = 0

class VideoUpdate(BaseModel):
    section_id: Optional[int] = None
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration_seconds: Optional[int] = Field(None, ge=0)
    order_index: Optional[int] = None

    @field_validator("section_id", "title", "order_index")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("空にできません")
        return value

class VideoResponse(BaseModel):
    video_id: int
    section_id: int
    title: str
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration_seconds: Optional[int] = None
    order_index: int

class ResourceCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    url: str = Field(..., min_length=1)

class ResourceResponse(BaseModel):
    resource_id: int
    video_id: int
    title: str
    url: str


# ============================================================
# CMS SCHEMAS
# ============================================================

class BlogPost(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    slug: Optional[str] = None
    contents: Optional[str] = None
    eyecatch_url: Optional[str] = None
    college_name: Optional[str] = None
    course_name: Optional[str] = None
    categories: List[str] = []
    published_at: Optional[datetime] = Field(None, alias="publishedAt")

class BlogPostList(BaseModel):
    contents: List[BlogPost]
    total_count: int
    offset: int
    limit: int


# ============================================================
# SCHOOL EDITOR SCHEMAS
# ============================================================

class SchoolInviteRequest(BaseModel):
    email: Optional[str] = None

class SchoolInviteResponse(BaseModel):
    success: bool = True
    access_url: str
    school_name: str
    expires_at: datetime

class EditorSessionResponse(BaseModel):
    valid: bool
    reason: Optional[str] = None
    school: Optional[SchoolDetail] = None


# ============================================================
# ADVISOR SCHEMAS
# ============================================================

class AdvisorQuery(BaseModel):
    query: str
    session_id: Optional[str] = None

class AdvisorMessage(BaseModel):
    role: str
    content: str
    created_at: datetime

class AdvisorAnswer(BaseModel):
    session_id: str
    answer: str
    sources: List[str] = []


# ============================================================
# DASHBOARD / STATISTICS SCHEMAS
# ============================================================

class StudyPlanStep(BaseModel):
    key: str
    label: str
    completed: bool

class StudyPlanProgress(BaseModel):
    percent: int
    steps: List[StudyPlanStep]

class RecommendedCourse(BaseModel):
    course_id: int
    name: str
    school_name: Optional[str] = None
    category: Optional[str] = None
    score: float
    reason: str

class DashboardResponse(BaseModel):
    profile: ProfileResponse
    goal_label: Optional[str] = None
    applications: List[CourseApplicationResponse] = []
    favorites: List[CourseSummary] = []
    visa_plans: List[VisaPlanResponse] = []
    study_plan: StudyPlanProgress
    recommendations: List[RecommendedCourse] = []

class DistributionEntry(BaseModel):
    value: str
    count: int

class AdminProfileSummary(BaseModel):
    user_id: int
    email: str
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    migration_goal: Optional[str] = None
    onboarding_completed: bool = False
    is_member: bool = False
    subscription_status: Optional[str] = None
    created_at: datetime
    created_at_label: str = ""

class AdminProfileList(BaseModel):
    profiles: List[AdminProfileSummary]
    total: int

class AdminProfileDetail(BaseModel):
    profile: ProfileResponse
    role: str
    goal_label: Optional[str] = None
    applications: List[CourseApplicationResponse] = []
    visa_plans: List[VisaPlanResponse] = []
    files: List[UserFileResponse] = []

class UserStatisticsResponse(BaseModel):
    total_users: int
    migration_goal: List[DistributionEntry]
    english_level: List[DistributionEntry]
    age_range: List[DistributionEntry]

class SchoolStatistics(BaseModel):
    school_id: int
    name: str
    course_count: int
    application_count: int
    favorite_count: int


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True
