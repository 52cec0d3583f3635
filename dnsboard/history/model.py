from datetime import datetime
from uuid import uuid4

from peewee import CharField, DateTimeField

from dnsboard.config.database import BaseModel, JSONField


class OperationHistory(BaseModel):
    """Append-only log of remote mutations."""

    id = CharField(primary_key=True, default=lambda: str(uuid4()))
    user_id = CharField(index=True)
    operation_type = CharField()  # create | update | delete
    resource_type = CharField(default="dns_record")  # zone | dns_record
    resource_id = CharField(index=True)
    resource_name = CharField(null=True)
    old_data = JSONField(null=True)
    new_data = JSONField(null=True)
    status = CharField(default="success")
    created_at = DateTimeField(default=datetime.utcnow)

    class Meta:
        table_name = "operation_history"

    def save(self, *args, **kwargs):
        if not kwargs.get("force_insert"):
            raise TypeError("Operation history entries are append-only")
        return super().save(*args, **kwargs)

    @classmethod
    def append(cls, user_id, operation_type, resource_id, resource_name=None,
               old_data=None, new_data=None, resource_type="dns_record", status="success"):
        return cls.create(
            user_id=user_id,
            operation_type=operation_type,
            resource_type=resource_type,
            resource_id=resource_id,
            resource_name=resource_name,
            old_data=old_data,
            new_data=new_data,
            status=status,
        )

    def to_dict(self):
        return {
            "id": self.id,
            "operation_type": self.operation_type,
            "resource_type": self.resource_type,
            "resource_id": self.resource_id,
            "resource_name": self.resource_name,
            "old_data": self.old_data,
            "new_data": self.new_data,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
        }
