from datetime import datetime

from peewee import BooleanField, CharField, DateTimeField, ForeignKeyField, IntegerField, TextField

from dnsboard.config.database import BaseModel, JSONField
from dnsboard.records.validation import to_relative
from dnsboard.zones.model import Zone


class DNSRecord(BaseModel):
    user_id = CharField(index=True)
    record_id = CharField()
    zone = ForeignKeyField(Zone, backref="records", on_delete="CASCADE")
    zone_name = CharField()
    name = CharField(index=True)  # always fully qualified
    type = CharField()
    content = TextField()
    ttl = IntegerField(default=1)
    proxied = BooleanField(default=False)
    proxiable = BooleanField(default=False)
    priority = IntegerField(null=True)
    comment = TextField(null=True)
    tags = JSONField(default=list)
    created_on = CharField(null=True)
    modified_on = CharField(null=True)
    last_synced_at = DateTimeField(default=datetime.utcnow)

    class Meta:
        table_name = "dns_records"
        indexes = ((("user_id", "record_id"), True),)

    def to_dict(self):
        return {
            "record_id": self.record_id,
            "zone_id": self.zone.zone_id,
            "zone_name": self.zone_name,
            "name": self.name,
            "display_name": to_relative(self.name, self.zone_name),
            "type": self.type,
            "content": self.content,
            "ttl": self.ttl,
            "proxied": self.proxied,
            "proxiable": self.proxiable,
            "priority": self.priority,
            "comment": self.comment,
            "tags": self.tags or [],
            "created_on": self.created_on,
            "modified_on": self.modified_on,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
        }
