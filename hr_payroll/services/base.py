import logging
from typing import Optional

from sqlalchemy.orm import Session


class BaseService:
    """
    Common plumbing for class-based services: a session, the tenant scope
    and a module logger.
    """

    def __init__(self, db: Session, tenant_id: Optional[int] = None):
        self.db = db
        self.tenant_id = tenant_id
        self._logger = logging.getLogger(self.__class__.__module__)
