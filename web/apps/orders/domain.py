"""Domain models, ports and the submission service for portfolio orders.

This module contains the serializable order snapshot (the attachment-free
projection of a draft), the persisted record types, protocol definitions
(ports) for the order and attachment stores, and the orchestrator that
drives the two-phase submission: create the order record, then upload each
attached file tagged with its (section, file) slot.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import List, Optional, Protocol

from .drafts import Attachment, Contact, FileDescriptor, HostingOption, OrderDraft, Section
from .errors import (
    AttachmentFailed,
    MissingContact,
    OrderCreateFailed,
)

logger = logging.getLogger("portfolio.orders.submission")


# ---- Snapshot (what gets persisted as the order record) ----
@dataclass(frozen=True)
class SnapshotFile:
    """File metadata as stored in the order record (no bytes, no reference)."""

    title: str = ""
    topic: str = ""
    description: str = ""


@dataclass(frozen=True)
class SnapshotSection:
    title: str = ""
    description: str = ""
    files: tuple[SnapshotFile, ...] = ()


@dataclass(frozen=True)
class OrderSnapshot:
    """Serializable projection of an ``OrderDraft``.

    Built with ``from_draft``; attachment handles and stored references are
    never part of it. Frozen because a snapshot is submitted once and never
    changed afterwards.
    """

    name: str
    email: str
    tagline: str = ""
    linkedin_url: str = ""
    phone: str = ""
    about: str = ""
    skills: tuple[str, ...] = ()
    sections: tuple[SnapshotSection, ...] = ()
    color_codes: tuple[str, ...] = ()
    hosting_option: HostingOption = HostingOption.SELF_HOSTED
    other_comments: str = ""

    @classmethod
    def from_draft(cls, draft: OrderDraft) -> "OrderSnapshot":
        c = draft.contact
        return cls(
            name=c.name,
            email=c.email,
            tagline=c.tagline,
            linkedin_url=c.linkedin_url,
            phone=c.phone,
            about=draft.about,
            skills=tuple(draft.skills),
            sections=tuple(
                SnapshotSection(
                    title=s.title,
                    description=s.description,
                    files=tuple(
                        SnapshotFile(title=f.title, topic=f.topic, description=f.description)
                        for f in s.files
                    ),
                )
                for s in draft.sections
            ),
            color_codes=tuple(draft.color_codes),
            hosting_option=HostingOption(draft.hosting_option),
            other_comments=draft.other_comments,
        )

    def to_draft(self) -> OrderDraft:
        """Rebuild an editable draft (no attachments) from this snapshot."""
        sections = [
            Section(
                title=s.title,
                description=s.description,
                files=[FileDescriptor(title=f.title, topic=f.topic, description=f.description) for f in s.files]
                or [FileDescriptor()],
            )
            for s in self.sections
        ]
        draft = OrderDraft(
            contact=Contact(
                name=self.name,
                tagline=self.tagline,
                linkedin_url=self.linkedin_url,
                email=self.email,
                phone=self.phone,
            ),
            about=self.about,
            skills=list(self.skills),
            hosting_option=self.hosting_option,
            other_comments=self.other_comments,
        )
        if sections:
            draft.sections = sections
        if self.color_codes:
            draft.color_codes = list(self.color_codes)
        return draft

    def to_dict(self) -> dict:
        """Plain JSON-compatible dict (lists instead of tuples, enum values)."""
        data = asdict(self)
        data["hosting_option"] = HostingOption(self.hosting_option).value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "OrderSnapshot":
        return cls(
            name=data.get("name", ""),
            email=data.get("email", ""),
            tagline=data.get("tagline", ""),
            linkedin_url=data.get("linkedin_url", ""),
            phone=data.get("phone", ""),
            about=data.get("about", ""),
            skills=tuple(data.get("skills") or ()),
            sections=tuple(
                SnapshotSection(
                    title=s.get("title", ""),
                    description=s.get("description", ""),
                    files=tuple(SnapshotFile(**f) for f in s.get("files") or ()),
                )
                for s in data.get("sections") or ()
            ),
            color_codes=tuple(data.get("color_codes") or ()),
            hosting_option=HostingOption(data.get("hosting_option", HostingOption.SELF_HOSTED)),
            other_comments=data.get("other_comments", ""),
        )


# ---- Persisted records ----
@dataclass(frozen=True)
class OrderRecord:
    """An order as persisted by an ``OrderStore``. Read-only once created."""

    order_id: str
    created_at: datetime
    snapshot: OrderSnapshot


@dataclass(frozen=True)
class AttachmentUpload:
    """One successful upload of a file into an order slot.

    (order_id, section_index, file_index) is not unique; the most recent
    upload for a slot is its current reference.
    """

    order_id: str
    section_index: int
    file_index: int
    original_file_name: str
    storage_address: str
    stored_reference: str
    mime_type: str = ""
    size: int = 0
    created_at: Optional[datetime] = None


# ---- Ports (DIP) ----
class OrderStorePort(Protocol):
    """Port describing order persistence used by the submission service.

    Implementers assign a unique, URL- and path-safe identifier on
    ``create`` and raise ``PersistenceError`` on storage faults.
    """

    def create(self, snapshot: OrderSnapshot) -> str:
        """Persist the snapshot as a new order record and return its id."""
        raise NotImplementedError()

    def exists(self, order_id: str) -> bool:
        raise NotImplementedError()

    def is_valid_id(self, order_id: str) -> bool:
        """Return True when ``order_id`` has this backend's id format."""
        raise NotImplementedError()


class AttachmentStorePort(Protocol):
    """Port describing attachment persistence.

    ``put`` validates the order id format, the slot coordinate and the
    presence of the file before any storage I/O, then returns an opaque
    stored reference.
    """

    def put(self, order_id: str, section_index: int, file_index: int, attachment: Optional[Attachment]) -> str:
        raise NotImplementedError()


# ---- Domain service ----
@dataclass
class SubmissionOutcome:
    """Successful submission: the order id plus the references uploaded."""

    order_id: str
    uploads: List[tuple[int, int, str]] = field(default_factory=list)


class SubmissionOrchestrator:
    """Domain service that submits a draft in two phases.

    Phase one creates the order record from the draft's snapshot. Phase two
    uploads every attached file, one at a time, in section-major/file-minor
    order, and reconciles each returned reference into the live draft. It
    never rolls back: an order with some attachments missing is a valid
    terminal state.
    """

    def __init__(self, orders: OrderStorePort, attachments: AttachmentStorePort):
        """Initialize the service with required dependencies.

        Args:
            orders: OrderStorePort used to create the order record.
            attachments: AttachmentStorePort used to upload each file.
        """
        self.orders = orders
        self.attachments = attachments

    def submit(self, draft: OrderDraft) -> SubmissionOutcome:
        """Create the order record, then upload each attachment sequentially.

        The draft is only mutated to record stored references of slots that
        uploaded successfully.

        Args:
            draft: Draft to submit.

        Returns:
            SubmissionOutcome: The new order id and the uploaded slots with
            their stored references.

        Raises:
            MissingContact: When name or email is blank; nothing is sent.
            OrderCreateFailed: When the order store fails; no uploads happen.
            AttachmentFailed: When an upload fails; carries the order id and
                the failing slot. Earlier slots stay reconciled.
        """
        if not draft.can_submit:
            raise MissingContact()

        # 1) Create the order record from the attachment-free snapshot
        snapshot = OrderSnapshot.from_draft(draft)
        try:
            order_id = self.orders.create(snapshot)
        except Exception as e:
            logger.warning("order create failed", extra={"error": str(e)})
            raise OrderCreateFailed(e) from e
        logger.info("order created", extra={"order_id": order_id})

        # 2) Upload attached files one by one
        outcome = SubmissionOutcome(order_id=order_id)
        for s, f, attachment in list(draft.pending_uploads()):
            reference = self._upload(draft, order_id, s, f, attachment)
            outcome.uploads.append((s, f, reference))

        logger.info("order submitted", extra={"order_id": order_id, "uploads": len(outcome.uploads)})
        return outcome

    def retry_slot(self, order_id: str, draft: OrderDraft, section_index: int, file_index: int) -> str:
        """Re-issue the upload of one slot against an existing order.

        Used to manually complete a partial submission.

        Raises:
            OutOfRange: If the slot does not exist in the draft.
            AttachmentFailed: If the upload fails again (or the slot has no
                attachment).
        """
        attachment = draft.file_at(section_index, file_index).attachment
        return self._upload(draft, order_id, section_index, file_index, attachment)

    def _upload(self, draft: OrderDraft, order_id: str, s: int, f: int, attachment) -> str:
        try:
            reference = self.attachments.put(order_id, s, f, attachment)
        except Exception as e:
            logger.warning(
                "attachment upload failed",
                extra={"order_id": order_id, "section_index": s, "file_index": f, "error": str(e)},
            )
            raise AttachmentFailed(order_id, s, f, e) from e
        draft.record_stored_reference(s, f, reference)
        logger.info("attachment uploaded", extra={"order_id": order_id, "section_index": s, "file_index": f})
        return reference
