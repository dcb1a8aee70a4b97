"""Submit an order draft from the command line.

Usage::

    python manage.py submit_order draft.json --attach 0:0:./cv.pdf --attach 1:0:shot.png
    python manage.py submit_order draft.json --remote https://orders.example.com

``draft.json`` uses the same JSON shape as ``POST /api/orders/``. Each
``--attach SECTION:FILE:PATH`` puts a local file into that slot before
submission. Without ``--remote`` the configured local stores are used.
"""

import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError
from pydantic import ValidationError as PydanticValidationError

from apps.orders.domain import SubmissionOrchestrator
from apps.orders.drafts import Attachment
from apps.orders.errors import AttachmentFailed, OrderError
from apps.orders.http_adapters import HttpAttachmentStore, HttpOrderStore
from apps.orders.providers import get_submission_orchestrator
from apps.orders.schemas import CreateOrderDTO


def _parse_attach(value: str) -> tuple[int, int, Path]:
    try:
        s, f, path = value.split(":", 2)
        return int(s), int(f), Path(path)
    except ValueError:
        raise CommandError(f"--attach expects SECTION:FILE:PATH, got {value!r}")


class Command(BaseCommand):
    help = "Create an order from a JSON draft and upload its attachments slot by slot."

    def add_arguments(self, parser):
        parser.add_argument("draft", help="Path to the draft JSON file")
        parser.add_argument(
            "--attach", action="append", default=[], metavar="SECTION:FILE:PATH",
            help="Attach a local file to a slot (repeatable)",
        )
        parser.add_argument("--remote", metavar="BASE_URL", help="Submit to a remote gateway over HTTP")

    def handle(self, *args, **options):
        try:
            payload = json.loads(Path(options["draft"]).read_text(encoding="utf-8"))
            dto = CreateOrderDTO.model_validate(payload)
        except (OSError, ValueError, PydanticValidationError) as e:
            raise CommandError(f"Cannot read draft: {e}")

        draft = dto.to_domain().to_draft()
        try:
            for s, f, path in (_parse_attach(a) for a in options["attach"]):
                draft.set_attachment(s, f, Attachment.from_path(path))
        except OSError as e:
            raise CommandError(f"Cannot read attachment: {e}")
        except OrderError as e:
            raise CommandError(f"Bad attachment slot: {e.message}")

        if options["remote"]:
            service = SubmissionOrchestrator(
                orders=HttpOrderStore(base_url=options["remote"]),
                attachments=HttpAttachmentStore(base_url=options["remote"]),
            )
        else:
            service = get_submission_orchestrator()

        try:
            outcome = service.submit(draft)
        except AttachmentFailed as e:
            self.stdout.write(f"order {e.order_id} created")
            self._report_references(draft)
            raise CommandError(
                f"upload failed for section {e.section_index}, file {e.file_index}: {e.message}",
                returncode=2,
            )
        except OrderError as e:
            raise CommandError(f"{e.code}: {e.message}")

        self.stdout.write(self.style.SUCCESS(f"order {outcome.order_id} created"))
        self._report_references(draft)

    def _report_references(self, draft):
        for s, section in enumerate(draft.sections):
            for f, item in enumerate(section.files):
                if item.stored_reference:
                    self.stdout.write(f"  s{s} f{f}: {item.stored_reference}")
