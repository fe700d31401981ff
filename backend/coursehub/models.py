from uuid_extensions import uuid7str
from enum import Enum
from datetime import datetime, timezone


from pydantic import EmailStr, FiniteFloat
from sqlmodel import Field, Relationship, SQLModel
from sqlalchemy import Column, DateTime, String, CheckConstraint
from sqlalchemy import UniqueConstraint


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    """Enum for user roles. Fixed at registration, there is no promotion."""

    STUDENT: str = "student"
    INSTRUCTOR: str = "instructor"


class ModuleType(str, Enum):
    """Enum for the kind of content a module carries."""

    TEXT: str = "text"
    VIDEO: str = "video"
    PDF: str = "pdf"


# Shared properties
class UserBase(SQLModel):
    """Base model for user entities containing common attributes.

    Attributes:
        email: Unique email address with maximum length 255 characters.
        first_name: First name of the user.
        last_name: Last name of the user.
        role: student or instructor.
    """

    email: EmailStr = Field(unique=True, index=True, max_length=255)
    first_name: str = Field(min_length=1, max_length=255)
    last_name: str = Field(min_length=1, max_length=255)
    role: UserRole = UserRole.STUDENT


# Properties to receive via API on creation
class UserCreate(UserBase):
    """Model for user registration via API endpoints. Inherits from UserBase.

    Attributes:
        password: Required password with validation constraints.
    """

    password: str = Field(min_length=8, max_length=40)


# Database model, database table inferred from class name
class User(UserBase, table=True):
    """Database representation of a user entity. Inherits from UserBase.

    Attributes:
        id: Unique identifier for the user.
        hashed_password: Hashed password for secure storage.
        role: student/instructor, db enforced.
        courses: Courses taught by the user.
        enrollments: Enrollments of the user as a student.
    """

    __tablename__ = "user"
    id: str = Field(default_factory=uuid7str, primary_key=True)
    hashed_password: str
    role: str = Field(
        default=UserRole.STUDENT.value,
        sa_column=Column(
            "role",
            String,
            CheckConstraint(
                "role IN ('student', 'instructor')",
                name="valid_user_role",
            ),
            nullable=False,
        ),
    )
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    courses: list["Course"] = Relationship(
        back_populates="instructor",
        passive_deletes="all",
    )
    enrollments: list["Enrollment"] = Relationship(
        back_populates="student",
        passive_deletes="all",
    )


# Properties to return via API, id is always required
class UserPublic(UserBase):
    """Public user data model for API responses. Inherits from UserBase.

    Attributes:
        id: Unique identifier for the user.
    """

    id: str


# JSON payload containing access token
class Token(SQLModel):
    """Access token model.

    Attributes:
        access_token: Required access token string.
        token_type: Optional token type string, defaults to 'bearer'.
    """

    access_token: str
    token_type: str = "bearer"


# Contents of JWT token
class TokenPayload(SQLModel):
    """JWT token payload validation model.

    Attributes:
        sub: Optional User identifier.
        role: Optional role of the user at signing time.
    """

    sub: str | None = None
    role: str | None = None


# Generic message
class Message(SQLModel):
    """Model for messages.

    Attributes:
        message: Required message string.
    """

    message: str


class CourseBase(SQLModel):
    """Base model for courses.

    Attributes:
        title: Title of the course.
        description: Description of the course.
        thumbnail: Optional URL of a thumbnail image.
        is_published: Only published courses accept enrollments.
    """
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    thumbnail: str | None = Field(default=None, max_length=2048)
    is_published: bool = True


class CourseCreate(CourseBase):
    """Model for creating a new course."""
    pass


class CourseUpdate(CourseBase):
    """Model for updating an existing course, all fields optional."""
    title: str | None = Field(default=None, min_length=1, max_length=255)  # type: ignore
    description: str | None = Field(default=None, min_length=1)  # type: ignore
    thumbnail: str | None = Field(default=None, max_length=2048)
    is_published: bool | None = None  # type: ignore


class Course(CourseBase, table=True):
    """Database model for a Course. Inherits from CourseBase.

    Attributes:
        id: Unique identifier for the course.
        instructor_id: Unique identifier for the user who owns the course.
        instructor: Relationship to the owning instructor.
        modules: Modules of the course, sorted by their order.
        enrollments: Enrollments in the course, removed by the database on delete.
    """
    __tablename__ = "course"
    id: str = Field(default_factory=uuid7str, primary_key=True)
    instructor_id: str = Field(foreign_key="user.id", nullable=False, ondelete="CASCADE")
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    instructor: User = Relationship(
        back_populates="courses",
        sa_relationship_kwargs={"lazy": "selectin"},
    )
    modules: list["Module"] = Relationship(
        back_populates="course",
        passive_deletes="all",
        sa_relationship_kwargs={
            "lazy": "selectin",
            "order_by": "Module.order",},
    )
    enrollments: list["Enrollment"] = Relationship(
        back_populates="course",
        passive_deletes="all",
    )


class ModuleBase(SQLModel):
    """Base model for modules.

    Attributes:
        title: Title of the module.
        content: Optional text content of the module.
        type: text, video or pdf.
        video_url: Optional URL of the video for video modules.
        pdf_url: Optional URL of the document for pdf modules.
        order: Display position in the course, neither unique nor contiguous.
    """
    title: str = Field(min_length=1, max_length=255)
    content: str | None = None
    type: ModuleType = ModuleType.TEXT
    video_url: str | None = Field(default=None, max_length=2048)
    pdf_url: str | None = Field(default=None, max_length=2048)
    order: int = 0


class ModuleCreate(ModuleBase):
    """Model for creating a new module."""
    pass


class ModuleUpdate(ModuleBase):
    """Model for updating an existing module, all fields optional."""
    title: str | None = Field(default=None, min_length=1, max_length=255)  # type: ignore
    type: ModuleType | None = None  # type: ignore
    order: int | None = None  # type: ignore


class Module(ModuleBase, table=True):
    """Database model for a Module. Inherits from ModuleBase.

    Attributes:
        id: Unique identifier for the module.
        course_id: Unique identifier for the course.
        course: Relationship to the course.
        type: text/video/pdf, db enforced.
    """
    __tablename__ = "module"
    id: str = Field(default_factory=uuid7str, primary_key=True)
    type: str = Field(
        default=ModuleType.TEXT.value,
        sa_column=Column(
            "type",
            String,
            CheckConstraint(
                "type IN ('text', 'video', 'pdf')",
                name="valid_module_type",
            ),
            nullable=False,
        ),
    )
    course_id: str = Field(foreign_key="course.id", nullable=False, ondelete="CASCADE")
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    course: Course = Relationship(back_populates="modules")


class ModulePublic(ModuleBase):
    """Public representation of a Module. Inherits from ModuleBase.

    Attributes:
        id: Unique identifier for the module.
        course_id: Unique identifier for the course.
    """
    id: str
    course_id: str
    created_at: datetime
    updated_at: datetime


class ModulesPublic(SQLModel):
    """Public representation for a list of Modules.

    Attributes:
        data: List of ModulePublic objects.
        count: Total number of modules.
    """
    data: list[ModulePublic]
    count: int


class CoursePublic(CourseBase):
    """Public representation of a Course. Inherits from CourseBase.

    Attributes:
        id: Unique identifier for the course.
        instructor_id: Unique identifier for the owning instructor.
        instructor: The owning instructor, when loaded.
        modules: Modules of the course sorted by order.
    """
    id: str
    instructor_id: str
    created_at: datetime
    updated_at: datetime
    instructor: UserPublic | None = None
    modules: list[ModulePublic] = Field(default_factory=list)

    @staticmethod
    def from_db(course: Course) -> "CoursePublic":
        """Create a CoursePublic instance from a Course database model.

        Args:
            course (Course): The Course database model instance, with
                instructor and modules loaded.
        Returns:
            CoursePublic: The corresponding CoursePublic instance.
        """
        return CoursePublic(
            id=course.id,
            instructor_id=course.instructor_id,
            title=course.title,
            description=course.description,
            thumbnail=course.thumbnail,
            is_published=course.is_published,
            created_at=course.created_at,
            updated_at=course.updated_at,
            instructor=UserPublic.model_validate(course.instructor) if course.instructor else None,
            modules=[ModulePublic.model_validate(module) for module in course.modules],
        )


class CoursesPublic(SQLModel):
    """Public representation for a list of Courses.

    Attributes:
        data: List of CoursePublic objects.
        count: Total number of courses.
    """
    data: list[CoursePublic]
    count: int


class Enrollment(SQLModel, table=True):
    """Database model linking one student to one course.

    Attributes:
        id: Unique identifier for the enrollment.
        student_id: Unique identifier for the enrolled student.
        course_id: Unique identifier for the course.
        enrolled_at: Timestamp of the enrollment.
        student: Relationship to the student.
        course: Relationship to the course.
        progress: Per-module progress rows of this enrollment.
    """
    __table_args__ = (UniqueConstraint("student_id", "course_id", name="unique_enrollment_per_student_course"),)
    __tablename__ = "enrollment"
    id: str = Field(default_factory=uuid7str, primary_key=True)
    student_id: str = Field(foreign_key="user.id", nullable=False, ondelete="CASCADE")
    course_id: str = Field(foreign_key="course.id", nullable=False, ondelete="CASCADE")
    enrolled_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    student: User = Relationship(back_populates="enrollments")
    course: Course = Relationship(
        back_populates="enrollments",
        sa_relationship_kwargs={"lazy": "selectin"},
    )
    progress: list["Progress"] = Relationship(
        back_populates="enrollment",
        passive_deletes="all",
        sa_relationship_kwargs={"lazy": "selectin"},
    )


class Progress(SQLModel, table=True):
    """Per-module completion state within one enrollment.

    is_completed is derived from completion_percentage, the database
    rejects rows where they disagree.

    Attributes:
        id: Unique identifier for the progress record.
        enrollment_id: Unique identifier for the enrollment.
        module_id: Unique identifier for the module.
        is_completed: True iff completion_percentage >= 100.
        completion_percentage: Completion between 0 and 100.
        enrollment: Relationship to the enrollment.
        module: Relationship to the module.
    """
    __table_args__ = (
        UniqueConstraint("enrollment_id", "module_id", name="unique_progress_per_enrollment_module"),
        CheckConstraint(
            "completion_percentage >= 0 AND completion_percentage <= 100",
            name="valid_completion_percentage",
        ),
        CheckConstraint(
            "is_completed = (completion_percentage >= 100)",
            name="completion_flag_matches_percentage",
        ),
    )
    __tablename__ = "progress"
    id: str = Field(default_factory=uuid7str, primary_key=True)
    enrollment_id: str = Field(foreign_key="enrollment.id", nullable=False, ondelete="CASCADE")
    module_id: str = Field(foreign_key="module.id", nullable=False, ondelete="CASCADE")
    is_completed: bool = False
    completion_percentage: float = 0.0
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))

    enrollment: Enrollment = Relationship(back_populates="progress")
    module: Module = Relationship()


class ProgressUpdate(SQLModel):
    """Payload for reporting progress on a module.

    Attributes:
        completion_percentage: Reported completion, clamped to [0, 100] on save.
    """
    completion_percentage: FiniteFloat


class ProgressPublic(SQLModel):
    """Public representation of a Progress row."""
    id: str
    enrollment_id: str
    module_id: str
    is_completed: bool
    completion_percentage: float
    created_at: datetime
    updated_at: datetime


class EnrollmentPublic(SQLModel):
    """Public representation of an Enrollment.

    Attributes:
        id: Unique identifier for the enrollment.
        student_id: Unique identifier for the student.
        course_id: Unique identifier for the course.
        enrolled_at: Timestamp of the enrollment.
        course: The course with its instructor and modules.
        progress: Progress rows of the enrollment.
    """
    id: str
    student_id: str
    course_id: str
    enrolled_at: datetime
    course: CoursePublic
    progress: list[ProgressPublic] = Field(default_factory=list)

    @staticmethod
    def from_db(enrollment: Enrollment) -> "EnrollmentPublic":
        """Create an EnrollmentPublic instance from an Enrollment database model.

        Args:
            enrollment (Enrollment): Enrollment with course, course modules,
                course instructor and progress loaded.
        Returns:
            EnrollmentPublic: The corresponding EnrollmentPublic instance.
        """
        return EnrollmentPublic(
            id=enrollment.id,
            student_id=enrollment.student_id,
            course_id=enrollment.course_id,
            enrolled_at=enrollment.enrolled_at,
            course=CoursePublic.from_db(enrollment.course),
            progress=[ProgressPublic.model_validate(p) for p in enrollment.progress],
        )


class EnrollmentProgressPublic(SQLModel):
    """Aggregate completion of an enrollment.

    Attributes:
        enrollment: The enrollment itself.
        overall_progress: Rounded percentage of completed modules.
        completed_modules: Number of completed progress rows.
        total_modules: Number of modules the course has now.
    """
    enrollment: EnrollmentPublic
    overall_progress: int
    completed_modules: int
    total_modules: int
