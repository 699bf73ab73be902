from datetime import datetime
from typing import Any, Optional

from sqlalchemy import delete

from draperads.db.models import WebSession, utcnow
from draperads.db.repositories.base import Repository


class WebSessionsRepository(Repository):
    def get_live(self, sid: str) -> Optional[WebSession]:
        record = self.session.get(WebSession, sid)
        if record is None:
            return None
        expire = record.expire
        if expire.tzinfo is None:
            expire = expire.replace(tzinfo=utcnow().tzinfo)
        if expire <= utcnow():
            self.session.delete(record)
            self.session.commit()
            return None
        return record

    def store(self, *, sid: str, data: dict[str, Any], expire: datetime) -> WebSession:
        record = self.session.get(WebSession, sid)
        if record is None:
            record = WebSession(sid=sid, sess=data, expire=expire)
            self.session.add(record)
        else:
            record.sess = dict(data)
            record.expire = expire
        self.session.commit()
        return record

    def destroy(self, sid: str) -> None:
        self.session.execute(delete(WebSession).where(WebSession.sid == sid))
        self.session.commit()

    def purge_expired(self) -> int:
        result = self.session.execute(delete(WebSession).where(WebSession.expire <= utcnow()))
        self.session.commit()
        return result.rowcount or 0
