from pydantic import BaseModel


class TemplateResponse(BaseModel):
    id: int
    name: str
    imageUrl: str


class AdAccountResponse(BaseModel):
    id: int
    accountId: str
    name: str
