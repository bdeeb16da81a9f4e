import logging
from typing import Optional

from sqlalchemy.orm import Session, sessionmaker

from core import setup

logger = logging.getLogger(__name__)


class CreateDBSession:
    """Session scope for one unit of work.

    Callers commit explicitly; if the block raises, pending changes are
    rolled back before the session is closed.
    """
    def __init__(self, factory: Optional[sessionmaker] = None):
        self.db_factory = factory or setup.database.get_session()
        self.session: Optional[Session] = None

    def __enter__(self) -> Session:
        self.session = self.db_factory()
        return self.session

    def __exit__(self, exc_type, exc_value, exc_traceback):
        if self.session is None:
            return
        try:
            if exc_type is not None:
                logger.warning("Rolling back session after %s", exc_type.__name__)
                self.session.rollback()
        finally:
            self.session.close()
            self.session = None
