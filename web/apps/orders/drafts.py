"""Client-side order draft and its structural edit operations.

The draft is the mutable, in-progress order a submitter edits before
sending it. It is owned by a single editor at a time, so the edit methods
mutate in place. Structural invariants are enforced here rather than left to
callers:

- ``sections`` and every section's ``files`` never become empty through
  ``remove_section`` / ``remove_file``; removing the last element is a no-op.
- ``color_codes`` is never emptied by ``remove_color``.
- Replacing or clearing an attachment always clears the slot's
  ``stored_reference`` so a stale reference is never shown for a changed file.
- Indexes that do not address an existing element raise ``OutOfRange``.
  Negative indexes are rejected, never interpreted from the end.
"""

import mimetypes
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional

from .errors import InvalidColor, OutOfRange

HEX_COLOR_RE = re.compile(r"#[0-9a-fA-F]{6}")

DEFAULT_COLOR_CODES = ("#ffffff", "#cfd2d6", "#d4af37")
NEW_COLOR_CODE = "#cfd2d6"
NEW_SECTION_TITLE = "New Section"

CONTACT_FIELDS = ("name", "tagline", "linkedin_url", "email", "phone")
DRAFT_FIELDS = ("about", "skills", "hosting_option", "other_comments")
SECTION_FIELDS = ("title", "description")
FILE_FIELDS = ("title", "topic", "description")


class HostingOption(str, Enum):
    """Who hosts the finished portfolio site."""

    SELF_HOSTED = "self_hosted"
    PROVIDER_HOSTED = "need_help"


@dataclass(frozen=True)
class Attachment:
    """Binary content picked for one file slot. Never serialized into a record.

    Attributes:
        name: Original file name as supplied by the submitter.
        mime_type: Declared content type.
        data: Raw file bytes.
    """

    name: str
    mime_type: str
    data: bytes = field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_path(cls, path: str | Path, mime_type: str | None = None) -> "Attachment":
        """Read a local file into an attachment handle.

        Args:
            path: File to read.
            mime_type: Explicit content type; guessed from the name otherwise.

        Returns:
            Attachment: Handle carrying the file name, type and bytes.
        """
        p = Path(path)
        guessed, _ = mimetypes.guess_type(p.name)
        return cls(
            name=p.name,
            mime_type=mime_type or guessed or "application/octet-stream",
            data=p.read_bytes(),
        )


@dataclass
class FileDescriptor:
    """One described work item, optionally carrying an attachment."""

    title: str = ""
    topic: str = ""
    description: str = ""
    attachment: Optional[Attachment] = None
    stored_reference: Optional[str] = None


@dataclass
class Section:
    title: str = ""
    description: str = ""
    files: List[FileDescriptor] = field(default_factory=lambda: [FileDescriptor()])


@dataclass
class Contact:
    name: str = ""
    tagline: str = ""
    linkedin_url: str = ""
    email: str = ""
    phone: str = ""


def _check_index(items: list, idx, what: str) -> None:
    if isinstance(idx, bool) or not isinstance(idx, int) or not 0 <= idx < len(items):
        raise OutOfRange(f"{what} index {idx!r} out of range (size {len(items)})")


def _check_color(value: str) -> str:
    if not isinstance(value, str) or not HEX_COLOR_RE.fullmatch(value):
        raise InvalidColor(f"{value!r} is not a #rrggbb color")
    return value


def _apply_patch(target, allowed: tuple, patch: dict) -> None:
    unknown = set(patch) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown field(s): {', '.join(sorted(unknown))}")
    for key, value in patch.items():
        setattr(target, key, value)


@dataclass
class OrderDraft:
    """Order in progress, including not-yet-uploaded attachments.

    Attributes:
        contact: Submitter contact block. ``name`` and ``email`` are required
            to submit.
        about: Free-text biography.
        skills: Ordered skills; duplicates allowed.
        sections: Ordered portfolio sections; never empty.
        color_codes: Ordered ``#rrggbb`` colors for the site palette.
        hosting_option: Hosting choice.
        other_comments: Free-text notes for the builder.
    """

    contact: Contact = field(default_factory=Contact)
    about: str = ""
    skills: List[str] = field(default_factory=list)
    sections: List[Section] = field(default_factory=lambda: [Section()])
    color_codes: List[str] = field(default_factory=lambda: list(DEFAULT_COLOR_CODES))
    hosting_option: HostingOption = HostingOption.SELF_HOSTED
    other_comments: str = ""

    # ---- Derived ----
    @property
    def can_submit(self) -> bool:
        """True iff trimmed name and trimmed email are both non-empty."""
        return bool((self.contact.name or "").strip() and (self.contact.email or "").strip())

    # ---- Scalar fields ----
    def set_field(self, name: str, value) -> None:
        """Set a contact or top-level field by name.

        Args:
            name: One of the contact fields (``name``, ``tagline``,
                ``linkedin_url``, ``email``, ``phone``) or ``about``,
                ``skills``, ``hosting_option``, ``other_comments``.
            value: New value. ``hosting_option`` accepts the enum or its
                wire value; ``skills`` is copied.

        Raises:
            ValueError: For unknown field names or hosting values.
        """
        if name in CONTACT_FIELDS:
            setattr(self.contact, name, value)
        elif name == "hosting_option":
            self.hosting_option = HostingOption(value)
        elif name == "skills":
            self.skills = list(value)
        elif name in DRAFT_FIELDS:
            setattr(self, name, value)
        else:
            raise ValueError(f"Unknown field: {name}")

    # ---- Sections ----
    def add_section(self) -> Section:
        section = Section(title=NEW_SECTION_TITLE)
        self.sections.append(section)
        return section

    def remove_section(self, idx: int) -> None:
        _check_index(self.sections, idx, "section")
        if len(self.sections) > 1:
            del self.sections[idx]

    def update_section(self, idx: int, **patch) -> Section:
        _check_index(self.sections, idx, "section")
        section = self.sections[idx]
        _apply_patch(section, SECTION_FIELDS, patch)
        return section

    # ---- Files ----
    def file_at(self, section_idx: int, file_idx: int) -> FileDescriptor:
        _check_index(self.sections, section_idx, "section")
        files = self.sections[section_idx].files
        _check_index(files, file_idx, "file")
        return files[file_idx]

    def add_file(self, section_idx: int) -> FileDescriptor:
        _check_index(self.sections, section_idx, "section")
        item = FileDescriptor()
        self.sections[section_idx].files.append(item)
        return item

    def remove_file(self, section_idx: int, file_idx: int) -> None:
        self.file_at(section_idx, file_idx)
        files = self.sections[section_idx].files
        if len(files) > 1:
            del files[file_idx]

    def update_file(self, section_idx: int, file_idx: int, **patch) -> FileDescriptor:
        item = self.file_at(section_idx, file_idx)
        _apply_patch(item, FILE_FIELDS, patch)
        return item

    def set_attachment(self, section_idx: int, file_idx: int, attachment: Optional[Attachment]) -> None:
        """Replace or clear a slot's attachment.

        This is the only way to change an attachment; it always clears the
        slot's stored reference, whatever the previous state was.
        """
        item = self.file_at(section_idx, file_idx)
        item.attachment = attachment
        item.stored_reference = None

    # ---- Upload bookkeeping ----
    def pending_uploads(self) -> Iterator[tuple[int, int, Attachment]]:
        """Yield ``(section_index, file_index, attachment)`` for every attached slot.

        Order is section-major, file-minor. Slots without an attachment are
        skipped.
        """
        for s, section in enumerate(self.sections):
            for f, item in enumerate(section.files):
                if item.attachment is not None:
                    yield s, f, item.attachment

    def record_stored_reference(self, section_idx: int, file_idx: int, reference: str) -> None:
        self.file_at(section_idx, file_idx).stored_reference = reference

    # ---- Colors ----
    def add_color(self, value: str = NEW_COLOR_CODE) -> None:
        self.color_codes.append(_check_color(value))

    def update_color(self, idx: int, value: str) -> None:
        _check_index(self.color_codes, idx, "color")
        self.color_codes[idx] = _check_color(value)

    def remove_color(self, idx: int) -> None:
        _check_index(self.color_codes, idx, "color")
        if len(self.color_codes) > 1:
            del self.color_codes[idx]

    # ---- Skills ----
    def add_skill(self, value: str = "") -> None:
        self.skills.append(value)

    def update_skill(self, idx: int, value: str) -> None:
        _check_index(self.skills, idx, "skill")
        self.skills[idx] = value

    def remove_skill(self, idx: int) -> None:
        # skills may legitimately be empty
        _check_index(self.skills, idx, "skill")
        del self.skills[idx]
