import logging

from sqlalchemy.orm import Session

from draperads.db.repositories import AdAccountsRepository, TemplatesRepository

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES = [
    ("Standard Ad", "https://images.unsplash.com/photo-1611926653458-09294b3142bf"),
    ("Carousel", "https://images.unsplash.com/photo-1557838923-2985c318be48"),
    ("Collection", "https://images.unsplash.com/photo-1607083206869-4c7672e72a8a"),
]

DEFAULT_AD_ACCOUNTS = [
    ("1234567890", "Main Business Account"),
    ("0987654321", "Secondary Account"),
]


def seed_reference_data(session: Session) -> None:
    """Populate the template catalog and ad accounts when their tables are empty."""
    templates_repo = TemplatesRepository(session)
    if templates_repo.count() == 0:
        for name, image_url in DEFAULT_TEMPLATES:
            templates_repo.create(name=name, image_url=image_url)
        logger.info("Seeded templates", extra={"count": len(DEFAULT_TEMPLATES)})

    accounts_repo = AdAccountsRepository(session)
    if accounts_repo.count() == 0:
        for account_id, name in DEFAULT_AD_ACCOUNTS:
            accounts_repo.create(account_id=account_id, name=name)
        logger.info("Seeded ad accounts", extra={"count": len(DEFAULT_AD_ACCOUNTS)})
