import logging
import re

from intranet.core.config import settings
from intranet.database import SessionLocal
from intranet.models.organization import Organization
from intranet.models.user import AppRole, User
from intranet.services import auth as auth_service
from intranet.services.job_titles import JobTitleService

logger = logging.getLogger(__name__)


def _slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-") or "org"


def init_system_data():
    """
    Creates the first organisation and its regional admin when the database
    holds no organisation yet and bootstrap credentials are configured.
    """
    if not settings.bootstrap_admin_email or not settings.bootstrap_admin_password:
        logger.info("Bootstrap credentials not configured, skipping system initialization")
        return

    db = SessionLocal()
    try:
        org_count = db.query(Organization).count()
        if org_count:
            logger.info(f"System initialization check: {org_count} organization(s) found.")
            return

        org = Organization(
            name=settings.bootstrap_org_name,
            slug=_slugify(settings.bootstrap_org_name),
            is_active=True,
        )
        db.add(org)
        db.flush()

        admin = User(
            email=settings.bootstrap_admin_email,
            full_name="Regional Administrator",
            hashed_password=auth_service.get_password_hash(settings.bootstrap_admin_password),
            role=AppRole.REGIONAL_ADMIN,
            job_title="Regional Director",
            organization_id=org.id,
            is_active=True,
        )
        db.add(admin)
        db.commit()

        seeded = JobTitleService(db, org.id).seed_defaults()
        logger.info(f"System bootstrapped: organization {org.slug}, admin {admin.email}, {seeded} job titles")
    except Exception as e:
        db.rollback()
        logger.error(f"Error during system initialization: {e}", exc_info=True)
        raise
    finally:
        db.close()
