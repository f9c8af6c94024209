"""
Firestore document models using Python dataclasses.

Each model includes:
  - An `id` field for the Firestore document ID
  - A `to_dict()` instance method for serialization
  - A `from_dict(data, doc_id)` classmethod for deserialization
  - Sensible defaults for all fields

Datetime fields are kept as native datetime objects since Firestore
handles them natively.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


ROLES = ("student", "instructor", "admin", "super_admin")
PROFILE_STATUSES = ("active", "suspended", "pending")
COURSE_LEVELS = ("beginner", "intermediate", "advanced")
ENROLLMENT_STATUSES = ("active", "completed", "suspended")
CLASS_PLATFORMS = ("zoom", "meet", "teams", "custom")
CLASS_STATUSES = ("scheduled", "cancelled", "completed")
PAYMENT_STATUSES = ("created", "paid", "failed", "cancelled")


# ---------------------------------------------------------------------------
# Helper
# ---------------------------------------------------------------------------

def _parse_datetime(value) -> Optional[datetime]:
    """Convert a value to datetime. Accepts datetime objects, ISO-format
    strings, and Firestore DatetimeWithNanoseconds objects."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        value = value.replace("Z", "+00:00")
        try:
            return datetime.fromisoformat(value)
        except (ValueError, TypeError):
            return None
    return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _as_list(value) -> List[Any]:
    return list(value) if value else []


# ===========================================================================
# 1. User
# ===========================================================================

@dataclass
class User:
    id: Optional[str] = None          # Firestore document ID == Firebase Auth UID
    email: str = ""
    display_name: str = ""
    photo_url: Optional[str] = None
    role: str = "student"
    provider: str = "email"
    profile_status: str = "active"
    unique_id: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    experience: Optional[str] = None
    learning_goals: Optional[str] = None

    enrolled_courses: List[str] = field(default_factory=list)
    created_courses: Optional[List[str]] = None
    wishlist: List[str] = field(default_factory=list)
    assigned_students: List[str] = field(default_factory=list)
    assigned_instructors: List[str] = field(default_factory=list)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None

    @property
    def initial(self) -> str:
        name = self.display_name or self.email
        return name[0].upper() if name else "?"

    def is_student(self) -> bool:
        return self.role == "student"

    def is_instructor(self) -> bool:
        return self.role == "instructor"

    def is_admin(self) -> bool:
        return self.role in ("admin", "super_admin")

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "email": self.email,
            "display_name": self.display_name,
            "photo_url": self.photo_url,
            "role": self.role,
            "provider": self.provider,
            "profile_status": self.profile_status,
            "unique_id": self.unique_id,
            "phone": self.phone,
            "bio": self.bio,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "experience": self.experience,
            "learning_goals": self.learning_goals,
            "enrolled_courses": list(self.enrolled_courses),
            "wishlist": list(self.wishlist),
            "assigned_students": list(self.assigned_students),
            "assigned_instructors": list(self.assigned_instructors),
            "created_at": self.created_at or _now(),
            "updated_at": self.updated_at or _now(),
            "last_login_at": self.last_login_at,
        }
        if self.created_courses is not None:
            data["created_courses"] = list(self.created_courses)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> User:
        created = data.get("created_courses")
        return cls(
            id=doc_id,
            email=data.get("email", ""),
            display_name=data.get("display_name", ""),
            photo_url=data.get("photo_url"),
            role=data.get("role", "student"),
            provider=data.get("provider", "email"),
            profile_status=data.get("profile_status", "active"),
            unique_id=data.get("unique_id"),
            phone=data.get("phone"),
            bio=data.get("bio"),
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            experience=data.get("experience"),
            learning_goals=data.get("learning_goals"),
            enrolled_courses=_as_list(data.get("enrolled_courses")),
            created_courses=list(created) if created is not None else None,
            wishlist=_as_list(data.get("wishlist")),
            assigned_students=_as_list(data.get("assigned_students")),
            assigned_instructors=_as_list(data.get("assigned_instructors")),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
            last_login_at=_parse_datetime(data.get("last_login_at")),
        )


# ===========================================================================
# 2. Lesson (embedded in Course.lessons)
# ===========================================================================

@dataclass
class Lesson:
    id: Optional[str] = None
    title: str = ""
    description: Optional[str] = None
    video_url: Optional[str] = None
    duration_minutes: int = 0
    order: int = 0
    is_preview: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "video_url": self.video_url,
            "duration_minutes": self.duration_minutes,
            "order": self.order,
            "is_preview": self.is_preview,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Lesson:
        return cls(
            id=doc_id or data.get("id"),
            title=data.get("title", ""),
            description=data.get("description"),
            video_url=data.get("video_url"),
            duration_minutes=int(data.get("duration_minutes") or 0),
            order=int(data.get("order") or 0),
            is_preview=bool(data.get("is_preview", False)),
        )


# ===========================================================================
# 3. Course
# ===========================================================================

@dataclass
class Course:
    id: Optional[str] = None
    title: str = ""
    description: str = ""
    short_description: Optional[str] = None
    category: str = ""
    level: str = "beginner"
    price: int = 0
    original_price: Optional[int] = None
    currency: str = "INR"
    duration: Optional[str] = None
    thumbnail_url: Optional[str] = None
    tags: List[str] = field(default_factory=list)

    instructor_id: Optional[str] = None
    instructor_name: str = ""

    is_published: bool = False
    available: bool = True
    lessons: List[Lesson] = field(default_factory=list)

    total_students: int = 0
    rating: float = 0.0
    total_ratings: int = 0

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def total_lessons(self) -> int:
        return len(self.lessons)

    @property
    def is_free(self) -> bool:
        return not self.price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "short_description": self.short_description,
            "category": self.category,
            "level": self.level,
            "price": self.price,
            "original_price": self.original_price,
            "currency": self.currency,
            "duration": self.duration,
            "thumbnail_url": self.thumbnail_url,
            "tags": list(self.tags),
            "instructor_id": self.instructor_id,
            "instructor_name": self.instructor_name,
            "is_published": self.is_published,
            "available": self.available,
            "lessons": [lesson.to_dict() for lesson in self.lessons],
            "total_students": self.total_students,
            "rating": self.rating,
            "total_ratings": self.total_ratings,
            "created_at": self.created_at or _now(),
            "updated_at": self.updated_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Course:
        return cls(
            id=doc_id,
            title=data.get("title", ""),
            description=data.get("description") or "",
            short_description=data.get("short_description"),
            category=data.get("category") or "",
            level=(data.get("level") or "beginner").lower(),
            price=int(data.get("price") or 0),
            original_price=data.get("original_price"),
            currency=data.get("currency", "INR"),
            duration=data.get("duration"),
            thumbnail_url=data.get("thumbnail_url"),
            tags=_as_list(data.get("tags")),
            instructor_id=data.get("instructor_id"),
            instructor_name=data.get("instructor_name", ""),
            is_published=bool(data.get("is_published", False)),
            available=bool(data.get("available", True)),
            lessons=[Lesson.from_dict(lesson) for lesson in data.get("lessons") or []],
            total_students=int(data.get("total_students") or 0),
            rating=float(data.get("rating") or 0.0),
            total_ratings=int(data.get("total_ratings") or 0),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


# ===========================================================================
# 4. CourseProgress (embedded in Enrollment.progress)
# ===========================================================================

@dataclass
class CourseProgress:
    completed_lessons: List[str] = field(default_factory=list)
    total_lessons: int = 0
    completion_percentage: int = 0
    time_spent: int = 0
    last_accessed_at: Optional[datetime] = None
    quiz_scores: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def percentage(completed: int, total: int) -> int:
        """Whole-number completion percentage, rounding halves up."""
        if total <= 0:
            return 0
        return min(100, int(completed * 100 / total + 0.5))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completed_lessons": list(self.completed_lessons),
            "total_lessons": self.total_lessons,
            "completion_percentage": self.completion_percentage,
            "time_spent": self.time_spent,
            "last_accessed_at": self.last_accessed_at or _now(),
            "quiz_scores": dict(self.quiz_scores),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> CourseProgress:
        data = data or {}
        return cls(
            completed_lessons=_as_list(data.get("completed_lessons")),
            total_lessons=int(data.get("total_lessons") or 0),
            completion_percentage=int(data.get("completion_percentage") or 0),
            time_spent=int(data.get("time_spent") or 0),
            last_accessed_at=_parse_datetime(data.get("last_accessed_at")),
            quiz_scores=dict(data.get("quiz_scores") or {}),
        )


# ===========================================================================
# 5. Enrollment
# ===========================================================================

@dataclass
class Enrollment:
    id: Optional[str] = None
    user_id: str = ""
    course_id: str = ""
    status: str = "active"
    enrolled_at: Optional[datetime] = None
    last_activity: Optional[datetime] = None
    progress: CourseProgress = field(default_factory=CourseProgress)
    payment: Optional[Dict[str, Any]] = None
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        now = _now()
        return {
            "user_id": self.user_id,
            "course_id": self.course_id,
            "status": self.status,
            "enrolled_at": self.enrolled_at or now,
            "last_activity": self.last_activity or now,
            "progress": self.progress.to_dict(),
            "payment": self.payment,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Enrollment:
        return cls(
            id=doc_id,
            user_id=data.get("user_id", ""),
            course_id=data.get("course_id", ""),
            status=data.get("status", "active"),
            enrolled_at=_parse_datetime(data.get("enrolled_at")),
            last_activity=_parse_datetime(data.get("last_activity")),
            progress=CourseProgress.from_dict(data.get("progress")),
            payment=data.get("payment"),
            completed_at=_parse_datetime(data.get("completed_at")),
        )


# ===========================================================================
# 6. ScheduledClass
# ===========================================================================

@dataclass
class ScheduledClass:
    id: Optional[str] = None
    course_id: str = ""
    instructor_id: str = ""
    title: str = ""
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: int = 60
    meeting_url: Optional[str] = None
    platform: str = "zoom"
    status: str = "scheduled"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "course_id": self.course_id,
            "instructor_id": self.instructor_id,
            "title": self.title,
            "description": self.description,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": self.duration,
            "meeting_url": self.meeting_url,
            "platform": self.platform,
            "status": self.status,
            "created_at": self.created_at or _now(),
            "updated_at": self.updated_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> ScheduledClass:
        return cls(
            id=doc_id,
            course_id=data.get("course_id", ""),
            instructor_id=data.get("instructor_id", ""),
            title=data.get("title", ""),
            description=data.get("description"),
            start_time=_parse_datetime(data.get("start_time")),
            end_time=_parse_datetime(data.get("end_time")),
            duration=int(data.get("duration") or 60),
            meeting_url=data.get("meeting_url"),
            platform=data.get("platform", "zoom"),
            status=data.get("status", "scheduled"),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


# ===========================================================================
# 7. Review
# ===========================================================================

@dataclass
class Review:
    id: Optional[str] = None
    course_id: str = ""
    user_id: str = ""
    user_name: str = ""
    rating: int = 5
    title: str = ""
    content: str = ""
    helpful: int = 0
    not_helpful: int = 0
    is_verified_purchase: bool = False
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "course_id": self.course_id,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "rating": self.rating,
            "title": self.title,
            "content": self.content,
            "helpful": self.helpful,
            "not_helpful": self.not_helpful,
            "is_verified_purchase": self.is_verified_purchase,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Review:
        return cls(
            id=doc_id,
            course_id=data.get("course_id", ""),
            user_id=data.get("user_id", ""),
            user_name=data.get("user_name", ""),
            rating=int(data.get("rating") or 0),
            title=data.get("title", ""),
            content=data.get("content", ""),
            helpful=int(data.get("helpful") or 0),
            not_helpful=int(data.get("not_helpful") or 0),
            is_verified_purchase=bool(data.get("is_verified_purchase", False)),
            created_at=_parse_datetime(data.get("created_at")),
        )


# ===========================================================================
# 8. Payment
# ===========================================================================

@dataclass
class Payment:
    order_id: str = ""
    payment_id: Optional[str] = None
    user_id: str = ""
    course_id: str = ""
    base_amount: int = 0
    tax_amount: int = 0
    processing_fee: int = 0
    total_amount: int = 0
    currency: str = "INR"
    status: str = "created"
    failure_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "order_id": self.order_id,
            "payment_id": self.payment_id,
            "user_id": self.user_id,
            "course_id": self.course_id,
            "base_amount": self.base_amount,
            "tax_amount": self.tax_amount,
            "processing_fee": self.processing_fee,
            "total_amount": self.total_amount,
            "currency": self.currency,
            "status": self.status,
            "failure_reason": self.failure_reason,
            "created_at": self.created_at or _now(),
            "updated_at": self.updated_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Payment:
        return cls(
            order_id=doc_id or data.get("order_id", ""),
            payment_id=data.get("payment_id"),
            user_id=data.get("user_id", ""),
            course_id=data.get("course_id", ""),
            base_amount=int(data.get("base_amount") or 0),
            tax_amount=int(data.get("tax_amount") or 0),
            processing_fee=int(data.get("processing_fee") or 0),
            total_amount=int(data.get("total_amount") or 0),
            currency=data.get("currency", "INR"),
            status=data.get("status", "created"),
            failure_reason=data.get("failure_reason"),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )
