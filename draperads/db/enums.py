from enum import Enum


class AdStatusEnum(str, Enum):
    draft = "draft"
    published = "published"
    active = "active"
    completed = "completed"


class CallToActionEnum(str, Enum):
    learn_more = "learn_more"
    sign_up = "sign_up"
    shop_now = "shop_now"
    download = "download"
    get_offer = "get_offer"


class CampaignObjectiveEnum(str, Enum):
    conversions = "conversions"
    leads = "leads"
    traffic = "traffic"
    awareness = "awareness"


class AdFormatEnum(str, Enum):
    image = "image"
    video = "video"
    carousel = "carousel"
    collection = "collection"


class OAuthProviderEnum(str, Enum):
    meta = "meta"
