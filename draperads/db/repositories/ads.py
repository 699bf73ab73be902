from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy import select

from draperads.db.enums import AdStatusEnum
from draperads.db.models import Ad, utcnow
from draperads.db.repositories.base import Repository


class AdsRepository(Repository):
    def list(self) -> List[Ad]:
        stmt = select(Ad).order_by(Ad.created_at.desc(), Ad.id.desc())
        return list(self.session.scalars(stmt).all())

    def get(self, ad_id: int) -> Optional[Ad]:
        return self.session.get(Ad, ad_id)

    def get_latest_draft(self) -> Optional[Ad]:
        stmt = (
            select(Ad)
            .where(Ad.status == AdStatusEnum.draft)
            .order_by(Ad.updated_at.desc(), Ad.id.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def create(self, **fields: Any) -> Ad:
        fields.setdefault("status", AdStatusEnum.draft)
        if fields.get("statistics") is None:
            fields["statistics"] = {}
        return self.save(Ad(**fields))

    def update_fields(self, ad_id: int, **fields: Any) -> Optional[Ad]:
        ad = self.get(ad_id)
        if not ad:
            return None
        for key, value in fields.items():
            setattr(ad, key, value)
        return self.save(ad)

    def update_status(self, ad_id: int, status: AdStatusEnum) -> Optional[Ad]:
        ad = self.get(ad_id)
        if not ad:
            return None
        ad.status = status
        if status == AdStatusEnum.published:
            ad.published_at = utcnow()
        return self.save(ad)

    def mark_active(self, ad: Ad, *, meta_ad_id: str, commit: bool = True) -> Ad:
        ad.meta_ad_id = meta_ad_id
        ad.status = AdStatusEnum.active
        ad.published_at = ad.published_at or utcnow()
        if not commit:
            self.session.flush()
            return ad
        return self.save(ad)
