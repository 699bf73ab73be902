from typing import List

from sqlalchemy import func, select

from draperads.db.models import AdAccount
from draperads.db.repositories.base import Repository


class AdAccountsRepository(Repository):
    def list(self) -> List[AdAccount]:
        stmt = select(AdAccount).order_by(AdAccount.id.asc())
        return list(self.session.scalars(stmt).all())

    def count(self) -> int:
        return int(self.session.scalar(select(func.count()).select_from(AdAccount)) or 0)

    def create(self, *, account_id: str, name: str) -> AdAccount:
        return self.save(AdAccount(account_id=account_id, name=name))
