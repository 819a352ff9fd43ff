import enum


class ClaimStatus(str, enum.Enum):
    # A successful code check (the VERIFIED moment) is stored directly as APPROVED
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


class VerificationType(str, enum.Enum):
    EMAIL = "EMAIL"
    SMS = "SMS"
    PHONE_CALL = "PHONE_CALL"


class BusinessCategory(str, enum.Enum):
    HOTEL = "HOTEL"
    RESTAURANT = "RESTAURANT"
    TOUR = "TOUR"
    TRANSPORT = "TRANSPORT"
    ATTRACTION = "ATTRACTION"
    OTHER = "OTHER"


class ContactType(str, enum.Enum):
    PHONE = "PHONE"
    WHATSAPP = "WHATSAPP"
    EMAIL = "EMAIL"
    WEBSITE = "WEBSITE"


class Role(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"
