from datetime import datetime
from enum import Enum
from typing import Optional, List, Union

from pydantic import BaseModel, field_validator


class LinkPrecedence(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class Contact(BaseModel):
    id: int
    phoneNumber: Optional[str] = None
    email: Optional[str] = None
    linkedId: Optional[int] = None
    linkPrecedence: LinkPrecedence
    createdAt: datetime
    updatedAt: datetime
    deletedAt: Optional[datetime] = None

    @property
    def is_primary(self) -> bool:
        return self.linkPrecedence == LinkPrecedence.PRIMARY


class IdentifyRequest(BaseModel):
    email: Optional[str] = None
    phoneNumber: Optional[Union[str, int]] = None

    @field_validator("phoneNumber")
    @classmethod
    def phone_as_string(cls, value):
        if value is None:
            return None
        return str(value)


class ContactResponse(BaseModel):
    primaryContactId: int
    emails: List[str]
    phoneNumbers: List[str]
    secondaryContactIds: List[int]


class FinalResponse(BaseModel):
    contact: ContactResponse
