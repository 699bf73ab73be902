from datetime import timedelta
from typing import Optional

from sqlalchemy import delete

from draperads.db.enums import OAuthProviderEnum
from draperads.db.models import OAuthState, utcnow
from draperads.db.repositories.base import Repository

OAUTH_STATE_TTL = timedelta(minutes=15)


class OAuthStatesRepository(Repository):
    def create(self, *, state: str, session_id: str, provider: OAuthProviderEnum) -> OAuthState:
        return self.save(OAuthState(state=state, session_id=session_id, provider=provider))

    def consume(self, *, state: str, session_id: str, provider: OAuthProviderEnum) -> Optional[OAuthState]:
        """Return and delete the matching state, or None if unknown, expired, or bound elsewhere."""
        record = self.session.get(OAuthState, state)
        if record is None:
            return None
        if record.session_id != session_id or record.provider != provider:
            return None
        created_at = record.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=utcnow().tzinfo)
        self.session.delete(record)
        self.session.commit()
        if utcnow() - created_at > OAUTH_STATE_TTL:
            return None
        return record

    def purge_expired(self) -> int:
        cutoff = utcnow() - OAUTH_STATE_TTL
        result = self.session.execute(delete(OAuthState).where(OAuthState.created_at < cutoff))
        self.session.commit()
        return result.rowcount or 0
