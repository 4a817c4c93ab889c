from rest_framework import serializers

from .models import ConflictLog, SyncEventLog


class DeletedEntitySerializer(serializers.ModelSerializer):
    deleted_at = serializers.DateTimeField(source="created_at")

    class Meta:
        model = SyncEventLog
        fields = ["entity_type", "entity_id", "deleted_at"]


class ConflictLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = ConflictLog
        fields = [
            "id",
            "event_id",
            "entity_type",
            "entity_id",
            "conflict_type",
            "server_payload",
            "client_payload",
            "resolved",
            "created_at",
        ]
