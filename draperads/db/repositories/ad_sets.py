from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy import select

from draperads.db.enums import AdStatusEnum
from draperads.db.models import AdSet, utcnow
from draperads.db.repositories.base import Repository


class AdSetsRepository(Repository):
    def list(self, *, ad_id: Optional[int] = None) -> List[AdSet]:
        stmt = select(AdSet)
        if ad_id is not None:
            stmt = stmt.where(AdSet.ad_id == ad_id)
        stmt = stmt.order_by(AdSet.created_at.asc(), AdSet.id.asc())
        return list(self.session.scalars(stmt).all())

    def get(self, ad_set_id: int) -> Optional[AdSet]:
        return self.session.get(AdSet, ad_set_id)

    def create(self, *, commit: bool = True, **fields: Any) -> AdSet:
        fields.setdefault("status", AdStatusEnum.draft)
        ad_set = AdSet(**fields)
        if not commit:
            self.session.add(ad_set)
            self.session.flush()
            return ad_set
        return self.save(ad_set)

    def mark_active(self, ad_set: AdSet, *, meta_ad_set_id: str, commit: bool = True) -> AdSet:
        ad_set.meta_ad_set_id = meta_ad_set_id
        ad_set.status = AdStatusEnum.active
        ad_set.published_at = ad_set.published_at or utcnow()
        if not commit:
            self.session.flush()
            return ad_set
        return self.save(ad_set)
