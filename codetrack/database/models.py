from sqlalchemy import (
    Column, Integer, String, DateTime, Boolean, Text,
    ForeignKey, Enum as SQLEnum, UniqueConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship
from enum import Enum
from typing import Dict, Iterable
import json

from codetrack.constants import PlatformConstants
from codetrack.utils.exceptions import InvalidTransitionError
from codetrack.utils.time_utils import to_local, utcnow

Base = declarative_base()

class Platform(Enum):
    LEETCODE = "leetcode"
    CODECHEF = "codechef"
    GEEKSFORGEEKS = "geeksforgeeks"
    HACKERRANK = "hackerrank"
    GITHUB = "github"

    @property
    def display_name(self) -> str:
        return PlatformConstants.DISPLAY_NAMES[self.value]

    @property
    def metrics(self) -> tuple:
        return PlatformConstants.PLATFORM_METRICS[self.value]

    @classmethod
    def parse(cls, value) -> "Platform":
        """Accept a Platform or its string value (case-insensitive)."""
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower())

class LinkStatus(Enum):
    NONE = "none"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    SUSPENDED = "suspended"

    def can_transition_to(self, target: "LinkStatus") -> bool:
        return target in LINK_STATUS_TRANSITIONS[self]

# Submitting a username (-> pending/accepted) is allowed from every state;
# suspension only ever follows an accepted or already-suspended link.
LINK_STATUS_TRANSITIONS = {
    LinkStatus.NONE: {LinkStatus.PENDING, LinkStatus.ACCEPTED},
    LinkStatus.PENDING: {LinkStatus.PENDING, LinkStatus.ACCEPTED, LinkStatus.REJECTED},
    LinkStatus.ACCEPTED: {LinkStatus.PENDING, LinkStatus.ACCEPTED, LinkStatus.SUSPENDED},
    LinkStatus.REJECTED: {LinkStatus.PENDING, LinkStatus.ACCEPTED},
    LinkStatus.SUSPENDED: {LinkStatus.PENDING, LinkStatus.ACCEPTED, LinkStatus.SUSPENDED},
}

class Student(Base):
    __tablename__ = 'students'

    student_id = Column(String(50), primary_key=True)  # Roll number, defines tie-break order
    name = Column(String(200), nullable=False)
    dept_code = Column(String(20), nullable=True, index=True)
    year = Column(Integer, nullable=True)
    section = Column(String(10), nullable=True)

    # Written back by every full ranking run
    score = Column(Integer, default=0, nullable=False)
    overall_rank = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=utcnow)

    performance = relationship("PerformanceRecord", back_populates="student", uselist=False,
                               cascade="all, delete-orphan")
    platform_links = relationship("PlatformLink", back_populates="student", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="student", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Student(student_id='{self.student_id}', name='{self.name}', rank={self.overall_rank})>"

class PlatformLink(Base):
    __tablename__ = 'platform_links'

    id = Column(Integer, primary_key=True)
    student_id = Column(String(50), ForeignKey('students.student_id'), nullable=False, index=True)
    platform = Column(SQLEnum(Platform), nullable=False)
    username = Column(String(100), nullable=True)

    # Verification / health state
    status = Column(SQLEnum(LinkStatus), default=LinkStatus.NONE, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    verified_by = Column(String(50), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    last_scrape_attempt = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    student = relationship("Student", back_populates="platform_links")

    __table_args__ = (
        UniqueConstraint('student_id', 'platform', name='uq_platform_link_student_platform'),
        Index('ix_platform_links_status', 'status'),
    )

    def transition_to(self, target: LinkStatus):
        """Move to `target`, raising InvalidTransitionError for illegal moves."""
        current = self.status or LinkStatus.NONE
        if not current.can_transition_to(target):
            raise InvalidTransitionError(self.platform.value, current.value, target.value)
        self.status = target

    @property
    def is_accepted(self) -> bool:
        return self.status == LinkStatus.ACCEPTED

    def __repr__(self):
        return (f"<PlatformLink(student_id='{self.student_id}', platform='{self.platform.value}', "
                f"username='{self.username}', status='{self.status.value}')>")

class PerformanceRecord(Base):
    __tablename__ = 'performance_records'

    student_id = Column(String(50), ForeignKey('students.student_id'), primary_key=True)

    # LeetCode
    easy_lc = Column(Integer, default=0, nullable=False)
    medium_lc = Column(Integer, default=0, nullable=False)
    hard_lc = Column(Integer, default=0, nullable=False)
    contests_lc = Column(Integer, default=0, nullable=False)
    badges_lc = Column(Integer, default=0, nullable=False)

    # CodeChef
    problems_cc = Column(Integer, default=0, nullable=False)
    contests_cc = Column(Integer, default=0, nullable=False)
    stars_cc = Column(Integer, default=0, nullable=False)
    badges_cc = Column(Integer, default=0, nullable=False)

    # GeeksforGeeks
    school_gfg = Column(Integer, default=0, nullable=False)
    basic_gfg = Column(Integer, default=0, nullable=False)
    easy_gfg = Column(Integer, default=0, nullable=False)
    medium_gfg = Column(Integer, default=0, nullable=False)
    hard_gfg = Column(Integer, default=0, nullable=False)
    contests_gfg = Column(Integer, default=0, nullable=False)

    # HackerRank
    stars_hr = Column(Integer, default=0, nullable=False)
    badges_hr = Column(Integer, default=0, nullable=False)
    badges_list_hr = Column(Text, default='[]', nullable=False)  # JSON list of badge names

    # GitHub
    repos_gh = Column(Integer, default=0, nullable=False)
    contributions_gh = Column(Integer, default=0, nullable=False)

    last_updated = Column(DateTime, nullable=True)

    student = relationship("Student", back_populates="performance")

    def get_metrics(self) -> Dict[str, int]:
        """All scored metric values keyed by column name."""
        return {metric: getattr(self, metric) or 0 for metric in PlatformConstants.all_metrics()}

    def apply_metrics(self, platform: Platform, values: Dict[str, object]) -> Iterable[str]:
        """Overwrite only the columns owned by `platform`; returns the columns written."""
        written = []
        for metric in platform.metrics:
            setattr(self, metric, int(values.get(metric) or 0))
            written.append(metric)
        for field in PlatformConstants.PLATFORM_EXTRA_FIELDS.get(platform.value, ()):
            if field in values:
                value = values[field]
                setattr(self, field, value if isinstance(value, str) else json.dumps(value))
                written.append(field)
        return written

    def __repr__(self):
        return f"<PerformanceRecord(student_id='{self.student_id}', last_updated={self.last_updated})>"

class GradingRule(Base):
    __tablename__ = 'grading_rules'

    metric = Column(String(50), primary_key=True)
    points = Column(Integer, default=0, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<GradingRule(metric='{self.metric}', points={self.points})>"

class Notification(Base):
    __tablename__ = 'notifications'

    id = Column(Integer, primary_key=True)
    student_id = Column(String(50), ForeignKey('students.student_id'), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    status_tag = Column(String(20), nullable=False)  # 'suspended' or 'accepted'
    read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    student = relationship("Student", back_populates="notifications")

    @property
    def created_at_local(self):
        """Creation time in the display timezone."""
        return to_local(self.created_at)

    def __repr__(self):
        return f"<Notification(student_id='{self.student_id}', title='{self.title}', read={self.read})>"

class Configuration(Base):
    __tablename__ = 'configurations'

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)  # JSON-encoded
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<Configuration(key='{self.key}', value={self.value})>"

class AuditLog(Base):
    __tablename__ = 'audit_logs'

    id = Column(Integer, primary_key=True)
    user_id = Column(String(50), nullable=True)
    action = Column(String(50), nullable=False, index=True)
    details = Column(Text, nullable=True)  # JSON-encoded
    created_at = Column(DateTime, default=utcnow)

    def __repr__(self):
        return f"<AuditLog(action='{self.action}', user_id='{self.user_id}')>"
