"""
Job-title knowledge: seniority ranking, supervisor detection, the hotel
job-title catalogue and the role suggested for a title.
"""
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from intranet.core.exceptions import ConflictError, NotFoundError
from intranet.models.job_title import JobTitle
from intranet.models.user import AppRole
from intranet.services.base import BaseService

# Lower number = higher rank
JOB_TITLE_HIERARCHY: Dict[str, int] = {
    # C-level and founders
    "founder": 1,
    "co-founder": 1,
    "ceo": 2,
    "chief executive officer": 2,
    "president": 3,
    "cfo": 4,
    "chief financial officer": 4,
    "coo": 5,
    "chief operating officer": 5,
    "cto": 6,
    "chief technology officer": 6,
    "cmo": 7,
    "chief marketing officer": 7,
    "cio": 8,
    "chief information officer": 8,
    "chro": 9,
    "chief human resources officer": 9,
    # Vice presidents
    "evp": 10,
    "executive vice president": 10,
    "svp": 11,
    "senior vice president": 11,
    "vp": 12,
    "vice president": 12,
    # Directors
    "executive director": 21,
    "senior director": 22,
    "director": 23,
    "associate director": 24,
    # General and regional management
    "general manager": 31,
    "regional manager": 32,
    "area manager": 33,
    "district manager": 34,
    # Property management
    "property manager": 41,
    "assistant property manager": 42,
    "property director": 40,
    # Department leadership
    "department head": 51,
    "department manager": 52,
    "department director": 50,
    # Managers
    "senior manager": 61,
    "manager": 62,
    "assistant manager": 63,
    "deputy manager": 64,
    # Supervisors and team leads
    "senior supervisor": 71,
    "supervisor": 72,
    "team lead": 73,
    "lead": 74,
    "shift supervisor": 75,
    "floor supervisor": 76,
    # Senior staff
    "senior specialist": 81,
    "senior coordinator": 82,
    "senior associate": 83,
    "senior analyst": 84,
    "chief": 85,
    "head waiter": 86,
    "captain": 87,
    # Mid-level staff
    "specialist": 91,
    "coordinator": 92,
    "associate": 93,
    "analyst": 94,
    "officer": 95,
    # Entry-level staff
    "staff": 101,
    "assistant": 102,
    "junior": 103,
    "trainee": 104,
    "intern": 105,
}

NO_TITLE_RANK = 999
UNKNOWN_TITLE_RANK = 500

# Substring scan order: most senior first, ties keep table order
_RANKED_KEYS = sorted(JOB_TITLE_HIERARCHY.items(), key=lambda item: item[1])

SUPERVISOR_KEYWORDS = ("supervisor", "lead", "senior", "chief", "head waiter", "captain")


class JobTitleDefinition(NamedTuple):
    title: str
    role: AppRole
    category: str


def _defs(category: str, role: AppRole, titles: Iterable[str]) -> List[JobTitleDefinition]:
    return [JobTitleDefinition(title, role, category) for title in titles]


JOB_TITLE_CATALOGUE: List[JobTitleDefinition] = [
    *_defs("Front Office", AppRole.STAFF, [
        "Front Desk Agent", "Guest Service Agent", "Night Auditor", "Bellman",
        "Concierge", "Door Attendant", "Valet Attendant",
    ]),
    *_defs("Housekeeping", AppRole.STAFF, [
        "Room Attendant", "Housekeeping Attendant", "Laundry Attendant",
        "Public Area Attendant", "Linen Attendant",
    ]),
    *_defs("Food & Beverage", AppRole.STAFF, [
        "Server", "Waiter", "Waitress", "Bartender", "Barista", "Kitchen Steward",
        "Commis Chef", "Demi Chef", "Room Service Attendant",
    ]),
    *_defs("Engineering", AppRole.STAFF, [
        "Maintenance Technician", "Engineering Attendant", "HVAC Technician",
        "Electrician", "Plumber",
    ]),
    *_defs("Sales & Marketing", AppRole.STAFF, [
        "Sales Coordinator", "Reservations Agent", "Marketing Coordinator",
    ]),
    *_defs("Front Office", AppRole.DEPARTMENT_HEAD, [
        "Front Office Supervisor", "Assistant Front Office Manager", "Front Office Manager",
        "Guest Relations Manager", "Front Desk Manager",
    ]),
    *_defs("Housekeeping", AppRole.DEPARTMENT_HEAD, [
        "Housekeeping Supervisor", "Assistant Executive Housekeeper", "Executive Housekeeper",
        "Laundry Manager",
    ]),
    *_defs("Food & Beverage", AppRole.DEPARTMENT_HEAD, [
        "Restaurant Supervisor", "Restaurant Manager", "Food & Beverage Manager", "F&B Manager",
        "Executive Chef", "Sous Chef", "Chef de Partie", "Banquet Manager", "Bar Manager",
        "Pastry Chef",
    ]),
    *_defs("Engineering", AppRole.DEPARTMENT_HEAD, [
        "Chief Engineer", "Maintenance Manager", "Assistant Chief Engineer", "Engineering Manager",
    ]),
    *_defs("Sales & Marketing", AppRole.DEPARTMENT_HEAD, [
        "Sales Manager", "Revenue Manager", "Director of Sales", "Marketing Manager",
    ]),
    JobTitleDefinition("Security Manager", AppRole.DEPARTMENT_HEAD, "Security"),
    JobTitleDefinition("Recreation Manager", AppRole.DEPARTMENT_HEAD, "Recreation"),
    JobTitleDefinition("Spa Manager", AppRole.DEPARTMENT_HEAD, "Spa"),
    JobTitleDefinition("Fitness Manager", AppRole.DEPARTMENT_HEAD, "Recreation"),
    JobTitleDefinition("Conference Manager", AppRole.DEPARTMENT_HEAD, "Conference"),
    JobTitleDefinition("Purchasing Manager", AppRole.DEPARTMENT_HEAD, "Purchasing"),
    JobTitleDefinition("IT Manager", AppRole.DEPARTMENT_HEAD, "Information Technology"),
    *_defs("Human Resources", AppRole.PROPERTY_HR, [
        "HR Coordinator", "HR Officer", "Property HR Manager", "Cluster HR Manager",
        "Learning & Development Coordinator", "HR Manager", "Talent Acquisition Manager",
    ]),
    *_defs("Management", AppRole.PROPERTY_MANAGER, [
        "General Manager", "Hotel Manager", "Resident Manager", "Assistant General Manager",
        "Operations Manager",
    ]),
    *_defs("Corporate HR", AppRole.REGIONAL_HR, [
        "Corporate HR Manager", "Regional HR Manager", "HR Director",
        "Corporate Learning & Development Manager", "Corporate Talent Acquisition Manager",
        "VP of Human Resources", "Director of Human Resources",
    ]),
    *_defs("Corporate Management", AppRole.REGIONAL_ADMIN, [
        "Area General Manager", "Regional Director", "Vice President of Operations",
        "Director of Operations", "Corporate Operations Manager", "Chief Operating Officer",
        "VP Operations", "Regional VP",
    ]),
]


def get_job_title_rank(job_title: Optional[str]) -> int:
    """
    Rank a job title (lower = more senior).

    An exact match wins; otherwise the most senior known title contained in
    the given one. Titles with no known keyword sit in the middle and missing
    titles go to the bottom.
    """
    if not job_title:
        return NO_TITLE_RANK

    title = job_title.lower().strip()
    if title in JOB_TITLE_HIERARCHY:
        return JOB_TITLE_HIERARCHY[title]

    for key, rank in _RANKED_KEYS:
        if key in title:
            return rank
    return UNKNOWN_TITLE_RANK


def sort_by_job_title_hierarchy(employees: Sequence) -> list:
    """Return a new list ordered by title rank, then full name (case-insensitive)."""
    return sorted(
        employees,
        key=lambda emp: (get_job_title_rank(emp.job_title), (emp.full_name or "").lower())
    )


def classify_employee_level(employee) -> str:
    """Place an employee in the ``head``, ``supervisor`` or ``staff`` band."""
    if AppRole.DEPARTMENT_HEAD.value in [getattr(r, "value", r) for r in employee.roles]:
        return "head"

    title = (employee.job_title or "").lower()
    if any(keyword in title for keyword in SUPERVISOR_KEYWORDS):
        return "supervisor"
    return "staff"


def suggest_system_role(job_title: Optional[str]) -> AppRole:
    """Suggest the system role for a job title."""
    if not job_title:
        return AppRole.STAFF

    normalized = job_title.lower().strip()
    for definition in JOB_TITLE_CATALOGUE:
        if definition.title.lower() == normalized:
            return definition.role

    if any(k in normalized for k in ("director", "vp", "vice president", "chief operating", "regional")):
        if "hr" in normalized or "human resource" in normalized:
            return AppRole.REGIONAL_HR
        return AppRole.REGIONAL_ADMIN

    if any(k in normalized for k in ("general manager", "hotel manager", "gm")):
        return AppRole.PROPERTY_MANAGER

    if "hr" in normalized:
        if "corporate" in normalized or "regional" in normalized:
            return AppRole.REGIONAL_HR
        return AppRole.PROPERTY_HR

    if any(k in normalized for k in ("manager", "supervisor", "chef", "head")):
        return AppRole.DEPARTMENT_HEAD

    return AppRole.STAFF


def get_common_job_titles() -> List[str]:
    return sorted(d.title for d in JOB_TITLE_CATALOGUE)


def get_job_title_categories() -> List[str]:
    return sorted({d.category for d in JOB_TITLE_CATALOGUE})


def get_job_titles_by_category(category: str) -> List[str]:
    return sorted(d.title for d in JOB_TITLE_CATALOGUE if d.category == category)


def get_job_titles_by_role(role: AppRole) -> List[str]:
    return sorted(d.title for d in JOB_TITLE_CATALOGUE if d.role == role)


class JobTitleService(BaseService):
    """Organisation-specific job-title list, seeded from the catalogue."""

    def __init__(self, db: Session, org_id: int):
        super().__init__(db, org_id)

    def list(self, category: Optional[str] = None, include_inactive: bool = False) -> List[JobTitle]:
        query = self.db.query(JobTitle).filter(JobTitle.organization_id == self.org_id)
        if category:
            query = query.filter(JobTitle.category == category)
        if not include_inactive:
            query = query.filter(JobTitle.is_active == True)  # noqa: E712
        return query.order_by(JobTitle.category, JobTitle.title).all()

    def get(self, job_title_id: int) -> JobTitle:
        job_title = self.db.query(JobTitle).filter(
            JobTitle.id == job_title_id,
            JobTitle.organization_id == self.org_id
        ).first()
        if job_title is None:
            raise NotFoundError("Job title", job_title_id)
        return job_title

    def create(self, title: str, category: str, default_role: Optional[AppRole] = None) -> JobTitle:
        job_title = JobTitle(
            organization_id=self.org_id,
            title=title.strip(),
            category=category.strip(),
            default_role=default_role or suggest_system_role(title),
        )
        self.db.add(job_title)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f'Job title "{title}" already exists')
        self.db.refresh(job_title)
        self.log_info(f"Job title created: {job_title.title}")
        return job_title

    def update(self, job_title_id: int, **changes) -> JobTitle:
        job_title = self.get(job_title_id)
        for field, value in changes.items():
            if value is not None:
                setattr(job_title, field, value.strip() if isinstance(value, str) else value)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError(f'Job title "{job_title.title}" already exists')
        self.db.refresh(job_title)
        return job_title

    def deactivate(self, job_title_id: int) -> JobTitle:
        return self.update(job_title_id, is_active=False)

    def seed_defaults(self) -> int:
        """Insert catalogue titles missing from the organisation. Returns the count added."""
        existing = {
            t for (t,) in self.db.query(JobTitle.title).filter(JobTitle.organization_id == self.org_id)
        }
        added = 0
        for definition in JOB_TITLE_CATALOGUE:
            if definition.title in existing:
                continue
            self.db.add(JobTitle(
                organization_id=self.org_id,
                title=definition.title,
                category=definition.category,
                default_role=definition.role,
            ))
            added += 1
        self.db.commit()
        self.log_info(f"Seeded {added} job titles")
        return added
