import logging
from typing import Optional
from sqlalchemy.orm import Session


class BaseService:
    """
    Common base for database-backed services.
    Holds the request session and the tenant the service operates on.
    """

    def __init__(self, db: Session, org_id: Optional[int] = None):
        self.db = db
        self.org_id = org_id
        self._logger = logging.getLogger(self.__class__.__module__)

    def log_info(self, message: str, **extra):
        self._logger.info(message, extra=self._context(extra))

    def log_warning(self, message: str, **extra):
        self._logger.warning(message, extra=self._context(extra))

    def _context(self, extra: dict) -> dict:
        if self.org_id is not None:
            extra.setdefault("organization_id", self.org_id)
        return extra
