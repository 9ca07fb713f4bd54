from contextlib import AbstractContextManager
from typing import Callable, Optional

from sqlalchemy.orm import Session

from aqm_server.adapters.db.session import get_session_factory


class SqlAlchemyUoW(AbstractContextManager):
    def __init__(
        self,
        session: Session | None = None,
        session_factory: Optional[Callable[[], Session]] = None,
    ):
        self._external = session is not None
        if session is None:
            session = (session_factory or get_session_factory())()
        self.session: Session = session

    def __enter__(self):
        return self

    def __exit__(self, exc_type, *_):
        if self._external:
            return
        if exc_type:
            self.session.rollback()
        else:
            self.session.commit()
        self.session.close()

    def device_repo(self):
        from aqm_server.adapters.db.repository import SqlDeviceRepository

        return SqlDeviceRepository(self.session)

    def reading_repo(self):
        from aqm_server.adapters.db.repository import SqlReadingRepository

        return SqlReadingRepository(self.session)

    def alert_repo(self):
        from aqm_server.adapters.db.repository import SqlAlertRepository

        return SqlAlertRepository(self.session)

    def settings_repo(self):
        from aqm_server.adapters.db.repository import SqlSettingsRepository

        return SqlSettingsRepository(self.session)
