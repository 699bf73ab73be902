from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from draperads.db.deps import get_session
from draperads.db.repositories import AdAccountsRepository, TemplatesRepository
from draperads.schemas.catalog import AdAccountResponse, TemplateResponse

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/templates", response_model=list[TemplateResponse])
def list_templates(session: Session = Depends(get_session)):
    return [
        TemplateResponse(id=template.id, name=template.name, imageUrl=template.image_url)
        for template in TemplatesRepository(session).list()
    ]


@router.get("/ad-accounts", response_model=list[AdAccountResponse])
def list_ad_accounts(session: Session = Depends(get_session)):
    return [
        AdAccountResponse(id=account.id, accountId=account.account_id, name=account.name)
        for account in AdAccountsRepository(session).list()
    ]
