import uuid

from django.conf import settings
from django.db import models


class SyncEventLog(models.Model):
    APPLIED = "applied"
    DUPLICATE = "duplicate"
    CONFLICT = "conflict"
    IGNORED = "ignored"
    INVALID = "invalid"

    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="sync_events")
    event_id = models.UUIDField()
    entity_type = models.CharField(max_length=50)
    entity_id = models.UUIDField()
    operation = models.CharField(max_length=10)
    payload_json = models.JSONField(default=dict, blank=True)
    device_id = models.CharField(max_length=120, blank=True)
    status = models.CharField(max_length=20, default=APPLIED)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["owner", "event_id"], name="sync_event_unique_per_owner"),
        ]

    def __str__(self) -> str:
        return f"{self.entity_type} {self.operation} {self.event_id}"


class ConflictLog(models.Model):
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="sync_conflicts")
    event_id = models.UUIDField()
    entity_type = models.CharField(max_length=50)
    entity_id = models.UUIDField()
    conflict_type = models.CharField(max_length=50)
    server_payload = models.JSONField(default=dict, blank=True)
    client_payload = models.JSONField(default=dict, blank=True)
    resolved = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.entity_type} {self.conflict_type}"


def record_deletion(owner, entity_type: str, entity_id, device_id: str = "api") -> SyncEventLog:
    """Tombstone for deletes made outside the sync channel, so pull can report them."""
    return SyncEventLog.objects.create(
        owner=owner,
        event_id=uuid.uuid4(),
        entity_type=entity_type,
        entity_id=entity_id,
        operation="DELETE",
        device_id=device_id,
        status=SyncEventLog.APPLIED,
    )
