from typing import Literal

from pydantic import BaseModel

SuggestionsStatus = Literal["generated", "unavailable", "skipped"]


class UploadResponse(BaseModel):
    url: str
    filename: str
    mimetype: str
    suggestedHeadline: str = ""
    suggestedPrimaryText: str = ""
    suggestedDescription: str = ""
    suggestedCta: str = "learn_more"
    suggestionsStatus: SuggestionsStatus = "skipped"
