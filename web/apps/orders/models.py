import uuid
from django.db import models


class OrderRecordModel(models.Model):
    # UUID PK exposed in the API and used in upload addresses
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    name = models.CharField(max_length=200)
    email = models.CharField(max_length=254, db_index=True)
    hosting_option = models.CharField(max_length=32, default="self_hosted")
    # Attachment-free snapshot of the draft
    snapshot = models.JSONField(default=dict)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at", "-id"]


class AttachmentUploadModel(models.Model):
    # Plain column, not a FK: orders may live in a non-database order store
    order_id = models.CharField(max_length=64, db_index=True)
    section_index = models.PositiveIntegerField()
    file_index = models.PositiveIntegerField()
    original_file_name = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=100, blank=True, default="")
    size = models.BigIntegerField(default=0)
    storage_address = models.CharField(max_length=400)
    stored_reference = models.CharField(max_length=1000)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "order_attachments"
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["order_id", "section_index", "file_index"], name="ix_attachment_slot"),
        ]


class IdempotencyKey(models.Model):
    key = models.CharField(max_length=200, primary_key=True)
    request_hash = models.CharField(max_length=64)
    response_status = models.PositiveIntegerField(default=0)
    response_body = models.JSONField(default=dict)
    order_id = models.CharField(max_length=64, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "idempotency_keys"
