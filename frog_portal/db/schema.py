"""
Relational schema - every table the portal reads or writes.

Tables are declared with SQLAlchemy Core so the same definitions can be
created on PostgreSQL (production) and SQLite (tests). Queries elsewhere
stay as plain SQL through text().

Groups:
- Accounts: users, profiles
- Catalogue: goal_locations, schools, courses, course_subjects,
  course_intake_dates, school_photos, job_positions, course_job_positions
- User activity: favorite_courses, course_applications, user_schedules,
  user_files, course_application_documents
- Visa planning: visa_types, visa_requirements, visa_plans, visa_plan_items,
  visa_plan_reviews
- Learning: video_sections, learning_videos, video_resources, video_progress
- Integrations: refresh_tokens, school_access_tokens
"""

from sqlalchemy import (
    MetaData, Table, Column, Integer, String, Text, Boolean, DateTime,
    ForeignKey, UniqueConstraint, func
)

metadata = MetaData()


def _created_at() -> Column:
    return Column("created_at", DateTime, nullable=False, server_default=func.current_timestamp())


def _updated_at() -> Column:
    return Column("updated_at", DateTime, nullable=False, server_default=func.current_timestamp())


# ============================================================
# ACCOUNTS
# ============================================================

users = Table(
    "users", metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("role", String(20), nullable=False, server_default="user"),
    Column("is_active", Boolean, nullable=False, server_default="1"),
    _created_at(),
)

profiles = Table(
    "profiles", metadata,
    Column("profile_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.user_id"), nullable=False, unique=True),
    Column("first_name", String(100)),
    Column("last_name", String(100)),
    Column("avatar_url", Text),
    Column("migration_goal", String(50)),
    Column("english_level", String(50)),
    Column("current_occupation", String(200)),
    Column("future_occupation", Integer, ForeignKey("job_positions.job_position_id")),
    Column("work_experience", String(50)),
    Column("working_holiday", String(50)),
    Column("age_range", String(50)),
    Column("abroad_timing", String(50)),
    Column("support_needed", String(100)),
    Column("onboarding_completed", Boolean, nullable=False, server_default="0"),
    Column("is_member", Boolean, nullable=False, server_default="0"),
    Column("stripe_customer_id", String(100)),
    Column("stripe_subscription_id", String(100)),
    Column("subscription_status", String(50)),
    Column("subscription_period_end", DateTime),
    _created_at(),
    _updated_at(),
)


# ============================================================
# CATALOGUE
# ============================================================

goal_locations = Table(
    "goal_locations", metadata,
    Column("location_id", Integer, primary_key=True, autoincrement=True),
    Column("country", String(100), nullable=False),
    Column("city", String(100)),
)

schools = Table(
    "schools", metadata,
    Column("school_id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(200), nullable=False),
    Column("goal_location_id", Integer, ForeignKey("goal_locations.location_id")),
    Column("website", Text),
    Column("description", Text),
    _created_at(),
)

job_positions = Table(
    "job_positions", metadata,
    Column("job_position_id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(200), nullable=False),
    Column("industry", String(100)),
)

courses = Table(
    "courses", metadata,
    Column("course_id", Integer, primary_key=True, autoincrement=True),
    Column("school_id", Integer, ForeignKey("schools.school_id"), nullable=False),
    Column("name", String(200), nullable=False),
    Column("category", String(100)),
    Column("description", Text),
    Column("total_weeks", Integer),
    Column("lecture_weeks", Integer),
    Column("work_permit_weeks", Integer),
    # Free text as entered by schools, e.g. "CA$18,500"
    Column("tuition_and_others", String(100)),
    Column("url", Text),
    Column("admission_requirements", Text),
    Column("graduation_requirements", Text),
    Column("job_support", Text),
    Column("notes", Text),
    Column("start_date", String(20)),
    # Comma separated migration goal codes
    Column("migration_goals", Text),
    Column("content_snare_template_id", String(100)),
    _created_at(),
    _updated_at(),
)

course_subjects = Table(
    "course_subjects", metadata,
    Column("subject_id", Integer, primary_key=True, autoincrement=True),
    Column("course_id", Integer, ForeignKey("courses.course_id"), nullable=False),
    Column("title", String(200), nullable=False),
    Column("description", Text),
    _created_at(),
)

course_intake_dates = Table(
    "course_intake_dates", metadata,
    Column("intake_date_id", Integer, primary_key=True, autoincrement=True),
    Column("course_id", Integer, ForeignKey("courses.course_id"), nullable=False),
    Column("month", Integer, nullable=False),
    Column("day", Integer),
    Column("year", Integer),
    # ISO date when the school publishes an exact start, e.g. "2025-09-02"
    Column("start_date", String(20)),
    Column("is_tentative", Boolean, nullable=False, server_default="1"),
    Column("notes", Text),
    _created_at(),
)

school_photos = Table(
    "school_photos", metadata,
    Column("photo_id", Integer, primary_key=True, autoincrement=True),
    Column("school_id", Integer, ForeignKey("schools.school_id"), nullable=False),
    Column("course_id", Integer, ForeignKey("courses.course_id")),
    Column("image_url", Text, nullable=False),
    Column("description", Text),
    _created_at(),
)

course_job_positions = Table(
    "course_job_positions", metadata,
    Column("course_id", Integer, ForeignKey("courses.course_id"), primary_key=True),
    Column("job_position_id", Integer, ForeignKey("job_positions.job_position_id"), primary_key=True),
)


# ============================================================
# USER ACTIVITY
# ============================================================

favorite_courses = Table(
    "favorite_courses", metadata,
    Column("favorite_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.user_id"), nullable=False),
    Column("course_id", Integer, ForeignKey("courses.course_id"), nullable=False),
    _created_at(),
    UniqueConstraint("user_id", "course_id", name="uq_favorite_user_course"),
)

course_applications = Table(
    "course_applications", metadata,
    Column("application_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.user_id"), nullable=False),
    Column("course_id", Integer, ForeignKey("courses.course_id"), nullable=False),
    Column("intake_date_id", Integer, ForeignKey("course_intake_dates.intake_date_id")),
    Column("status", String(20), nullable=False, server_default="draft"),
    Column("content_snare_id", String(100)),
    Column("content_snare_request_id", String(100)),
    Column("request_url", Text),
    Column("admin_notes", Text),
    _created_at(),
    _updated_at(),
)

user_schedules = Table(
    "user_schedules", metadata,
    Column("schedule_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.user_id"), nullable=False),
    Column("application_id", Integer, ForeignKey("course_applications.application_id")),
    Column("title", String(200), nullable=False),
    Column("description", Text),
    Column("year", Integer, nullable=False),
    Column("month", Integer, nullable=False),
    Column("day", Integer),
    Column("is_completed", Boolean, nullable=False, server_default="0"),
    Column("is_admin_locked", Boolean, nullable=False, server_default="0"),
    Column("sort_order", Integer, nullable=False, server_default="0"),
    _created_at(),
    _updated_at(),
)

user_files = Table(
    "user_files", metadata,
    Column("file_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.user_id"), nullable=False),
    Column("name", String(255), nullable=False),
    Column("path", Text, nullable=False),
    Column("url", Text, nullable=False),
    Column("size", Integer, nullable=False),
    Column("content_type", String(100)),
    Column("downloaded", Boolean, nullable=False, server_default="0"),
    _created_at(),
)

course_application_documents = Table(
    "course_application_documents", metadata,
    Column("document_id", Integer, primary_key=True, autoincrement=True),
    Column("application_id", Integer, ForeignKey("course_applications.application_id"), nullable=False),
    Column("file_id", Integer, ForeignKey("user_files.file_id"), nullable=False),
    Column("document_type", String(30), nullable=False),
    Column("status", String(20), nullable=False, server_default="pending"),
    _created_at(),
    _updated_at(),
)


# ============================================================
# VISA PLANNING
# ============================================================

visa_types = Table(
    "visa_types", metadata,
    Column("visa_type_id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(200), nullable=False),
    Column("description", Text),
    Column("country", String(100)),
)

visa_requirements = Table(
    "visa_requirements", metadata,
    Column("requirement_id", Integer, primary_key=True, autoincrement=True),
    Column("visa_type_id", Integer, ForeignKey("visa_types.visa_type_id"), nullable=False),
    Column("description", Text, nullable=False),
    Column("additional_info", Text),
    Column("order_index", Integer, nullable=False, server_default="0"),
)

visa_plans = Table(
    "visa_plans", metadata,
    Column("plan_id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("users.user_id"), nullable=False),
    Column("name", String(200), nullable=False),
    Column("description", Text),
    Column("status", String(20), nullable=False, server_default="draft"),
    _created_at(),
    _updated_at(),
)

visa_plan_items = Table(
    "visa_plan_items", metadata,
    Column("item_id", Integer, primary_key=True, autoincrement=True),
    Column("plan_id", Integer, ForeignKey("visa_plans.plan_id"), nullable=False),
    Column("visa_type_id", Integer, ForeignKey("visa_types.visa_type_id"), nullable=False),
    Column("order_index", Integer, nullable=False, server_default="0"),
    Column("notes", Text),
)

visa_plan_reviews = Table(
    "visa_plan_reviews", metadata,
    Column("review_id", Integer, primary_key=True, autoincrement=True),
    Column("plan_id", Integer, ForeignKey("visa_plans.plan_id"), nullable=False),
    Column("reviewer_id", Integer, ForeignKey("users.user_id")),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("reviewer_notes", Text),
    Column("completed_at", DateTime),
    _created_at(),
)


# ============================================================
# LEARNING CONTENT
# ============================================================

video_sections = Table(
    "video_sections", metadata,
    Column("section_id", Integer, primary_key=True, autoincrement=True),
    Column("title", String(200), nullable=False),
    Column("description", Text),
    Column("order_index", Integer, nullable=False, server_default="0"),
    _created_at(),
)

learning_videos = Table(
    "learning_videos", metadata,
    Column("video_id", Integer, primary_key=True, autoincrement=True),
    Column("section_id", Integer, ForeignKey("video_sections.section_id"), nullable=False),
    Column("title", String(200), nullable=False),
    Column("description", Text),
    Column("video_url", Text),
    Column("duration_seconds", Integer),
    Column("order_index", Integer, nullable=False, server_default="0"),
)

video_resources = Table(
    "video_resources", metadata,
    Column("resource_id", Integer, primary_key=True, autoincrement=True),
    Column("video_id", Integer, ForeignKey("learning_videos.video_id"), nullable=False),
    Column("title", String(200), nullable=False),
    Column("url", Text, nullable=False),
)

video_progress = Table(
    "video_progress", metadata,
    Column("user_id", Integer, ForeignKey("users.user_id"), primary_key=True),
    Column("video_id", Integer, ForeignKey("learning_videos.video_id"), primary_key=True),
    Column("progress_seconds", Integer, nullable=False, server_default="0"),
    Column("completed", Boolean, nullable=False, server_default="0"),
    _updated_at(),
)


# ============================================================
# INTEGRATIONS
# ============================================================

refresh_tokens = Table(
    "refresh_tokens", metadata,
    Column("token_id", Integer, primary_key=True, autoincrement=True),
    Column("service_name", String(50), nullable=False),
    Column("refresh_token", Text, nullable=False),
    _created_at(),
)

school_access_tokens = Table(
    "school_access_tokens", metadata,
    Column("token_id", Integer, primary_key=True, autoincrement=True),
    Column("school_id", Integer, ForeignKey("schools.school_id"), nullable=False),
    Column("email", String(255), nullable=False),
    Column("token", String(64), nullable=False, unique=True),
    Column("expires_at", DateTime, nullable=False),
    Column("used_at", DateTime),
    Column("created_by", Integer, ForeignKey("users.user_id")),
    _created_at(),
)


def init_schema(engine) -> None:
    """Create any missing tables. Safe to call on every startup."""
    metadata.create_all(engine)
