"""Pydantic schemas for orders and attachment uploads.

This module exposes the request/response schemas used by the orders API and
the HTTP adapters. Field aliases follow the camelCase JSON sent by the order
form (``colorCodes``, ``hostingOption``, ``contactNumber``...); snake_case
names are accepted as well. Unknown keys (for example a client-side
``attachment`` or ``uploadedStoredName``) are ignored, so they never reach
the persisted record.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain import AttachmentUpload, OrderRecord, OrderSnapshot, SnapshotFile, SnapshotSection
from .drafts import HEX_COLOR_RE, HostingOption


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class FileIn(_WireModel):
    """Metadata for one described file. Bytes travel separately."""

    title: str = ""
    topic: str = ""
    description: str = ""


class SectionIn(_WireModel):
    title: str = ""
    description: str = ""
    files: list[FileIn] = Field(default_factory=list)


class CreateOrderDTO(_WireModel):
    """Schema for creating an order (the draft snapshot).

    Attributes:
        name: Submitter name. Required non-blank by the create endpoint.
        email: Submitter email. Required non-blank by the create endpoint.
        color_codes: ``#rrggbb`` colors, validated and lower-cased.
        hosting_option: ``self_hosted`` or ``need_help``.
    """

    name: Optional[str] = ""
    email: Optional[str] = ""
    tagline: str = ""
    linkedin_url: str = Field(default="", alias="linkedin")
    phone: str = Field(default="", alias="contactNumber")
    about: str = ""
    skills: list[str] = Field(default_factory=list)
    sections: list[SectionIn] = Field(default_factory=list)
    color_codes: list[str] = Field(default_factory=list, alias="colorCodes")
    hosting_option: HostingOption = Field(default=HostingOption.SELF_HOSTED, alias="hostingOption")
    other_comments: str = Field(default="", alias="otherComments")

    @field_validator("name", "email", mode="before")
    @classmethod
    def blank_contact(cls, v):
        # null is treated like an empty value so the contact check reports it
        return "" if v is None else v

    @field_validator("color_codes")
    @classmethod
    def validate_colors(cls, v: list[str]) -> list[str]:
        """Validate and normalize colors to lowercase ``#rrggbb``.

        Raises:
            ValueError: When a value is not a 6-digit hex color.
        """
        out = []
        for c in v:
            if not HEX_COLOR_RE.fullmatch(c):
                raise ValueError(f"Invalid color code: {c!r}")
            out.append(c.lower())
        return out

    @property
    def has_contact(self) -> bool:
        return bool(self.name.strip() and self.email.strip())

    def to_domain(self) -> OrderSnapshot:
        return OrderSnapshot(
            name=self.name,
            email=self.email,
            tagline=self.tagline,
            linkedin_url=self.linkedin_url,
            phone=self.phone,
            about=self.about,
            skills=tuple(self.skills),
            sections=tuple(
                SnapshotSection(
                    title=s.title,
                    description=s.description,
                    files=tuple(SnapshotFile(title=f.title, topic=f.topic, description=f.description) for f in s.files),
                )
                for s in self.sections
            ),
            color_codes=tuple(self.color_codes),
            hosting_option=self.hosting_option,
            other_comments=self.other_comments,
        )

    @classmethod
    def from_domain(cls, snapshot: OrderSnapshot) -> "CreateOrderDTO":
        return cls.model_validate(snapshot.to_dict())

    def to_payload(self) -> dict:
        """JSON body in the camelCase shape the create endpoint documents."""
        return self.model_dump(mode="json", by_alias=True)


class AttachmentOut(BaseModel):
    section_index: int
    file_index: int
    original_file_name: str
    stored_reference: str
    address: str
    mime_type: str = ""
    size: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, up: AttachmentUpload) -> "AttachmentOut":
        return cls(
            section_index=up.section_index,
            file_index=up.file_index,
            original_file_name=up.original_file_name,
            stored_reference=up.stored_reference,
            address=up.storage_address,
            mime_type=up.mime_type,
            size=up.size,
            created_at=up.created_at,
        )


class OrderReadDTO(BaseModel):
    """Read model for a persisted order and its latest upload per slot."""

    id: str
    created_at: datetime
    order: CreateOrderDTO
    attachments: list[AttachmentOut] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, record: OrderRecord, uploads: list[AttachmentUpload] | None = None) -> "OrderReadDTO":
        return cls(
            id=record.order_id,
            created_at=record.created_at,
            order=CreateOrderDTO.from_domain(record.snapshot),
            attachments=[AttachmentOut.from_domain(u) for u in uploads or []],
        )

    def to_payload(self) -> dict:
        data = self.model_dump(mode="json")
        data["order"] = self.order.to_payload()
        return data


class UploadResponseDTO(BaseModel):
    order_id: str
    section_index: int
    file_index: int
    original_file_name: str
    stored_reference: str
    address: str

    @classmethod
    def from_domain(cls, up: AttachmentUpload) -> "UploadResponseDTO":
        return cls(
            order_id=up.order_id,
            section_index=up.section_index,
            file_index=up.file_index,
            original_file_name=up.original_file_name,
            stored_reference=up.stored_reference,
            address=up.storage_address,
        )
