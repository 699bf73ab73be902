from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from sqlalchemy.orm import Session

from draperads.db.models import Ad, AdSet
from draperads.db.repositories import AdSetsRepository, AdsRepository

logger = logging.getLogger(__name__)


class AdPublisher(Protocol):
    def publish(self, *, ad_id: int, ad_set_name: str, account_id: str) -> dict[str, Any]: ...


class PublishError(RuntimeError):
    pass


@dataclass
class PublishResult:
    ad: Ad
    ad_set: AdSet
    meta_response: dict[str, Any]


def _publish_into_ad_set(
    session: Session,
    *,
    ad: Ad,
    ad_set_fields: dict[str, Any],
    publisher: AdPublisher,
) -> tuple[AdSet, dict[str, Any]]:
    ad_sets_repo = AdSetsRepository(session)
    ad_set = ad_sets_repo.create(commit=False, ad_id=ad.id, **ad_set_fields)
    meta_response = publisher.publish(ad_id=ad.id, ad_set_name=ad_set.name, account_id=ad_set.account_id)
    meta_ad_id = meta_response.get("id")
    meta_ad_set_id = meta_response.get("adset_id")
    if not meta_ad_id or not meta_ad_set_id:
        raise PublishError("Ad platform response is missing the ad or ad set id")
    AdsRepository(session).mark_active(ad, meta_ad_id=str(meta_ad_id), commit=False)
    ad_sets_repo.mark_active(ad_set, meta_ad_set_id=str(meta_ad_set_id), commit=False)
    return ad_set, meta_response


def publish_ad_to_ad_sets(
    session: Session,
    *,
    ad: Ad,
    ad_sets_fields: Sequence[dict[str, Any]],
    publisher: AdPublisher,
) -> list[PublishResult]:
    """
    Create each ad set, push the ad into it, and record the platform ids.

    Every write shares one transaction: if any ad set fails nothing is persisted and the
    ad keeps its previous status.
    """
    if not ad_sets_fields:
        raise PublishError("At least one ad set is required to publish")
    ad_id = ad.id
    published: list[tuple[AdSet, dict[str, Any]]] = []
    try:
        for fields in ad_sets_fields:
            published.append(_publish_into_ad_set(session, ad=ad, ad_set_fields=fields, publisher=publisher))
        session.commit()
    except Exception:
        session.rollback()
        logger.exception("Publish failed; rolled back", extra={"ad_id": ad_id})
        raise

    session.refresh(ad)
    results = []
    for ad_set, meta_response in published:
        session.refresh(ad_set)
        results.append(PublishResult(ad=ad, ad_set=ad_set, meta_response=meta_response))
    logger.info(
        "Published ad",
        extra={
            "ad_id": ad.id,
            "ad_set_ids": [result.ad_set.id for result in results],
            "meta_ad_id": ad.meta_ad_id,
        },
    )
    return results


def publish_ad(
    session: Session,
    *,
    ad: Ad,
    ad_set_fields: dict[str, Any],
    publisher: AdPublisher,
) -> PublishResult:
    return publish_ad_to_ad_sets(session, ad=ad, ad_sets_fields=[ad_set_fields], publisher=publisher)[0]
