from datetime import datetime

from peewee import BooleanField, CharField, DateTimeField

from dnsboard.config.database import BaseModel, JSONField

ZONE_STATUSES = ("active", "pending", "initializing", "moved", "deleted", "deactivated")


class Zone(BaseModel):
    user_id = CharField(index=True)
    zone_id = CharField()
    name = CharField(index=True)
    status = CharField(default="pending")
    paused = BooleanField(default=False)
    type = CharField(null=True)
    name_servers = JSONField(default=list)
    account_id = CharField(null=True)
    account_name = CharField(null=True)
    plan_id = CharField(null=True)
    plan_name = CharField(null=True)
    # provider timestamps are kept as the ISO strings it sends
    created_on = CharField(null=True)
    modified_on = CharField(null=True)
    activated_on = CharField(null=True)
    last_synced_at = DateTimeField(default=datetime.utcnow)

    class Meta:
        table_name = "cloudflare_zones"
        indexes = ((("user_id", "zone_id"), True),)

    def to_dict(self):
        return {
            "zone_id": self.zone_id,
            "name": self.name,
            "status": self.status,
            "paused": self.paused,
            "type": self.type,
            "name_servers": self.name_servers or [],
            "account_id": self.account_id,
            "account_name": self.account_name,
            "plan_id": self.plan_id,
            "plan_name": self.plan_name,
            "created_on": self.created_on,
            "modified_on": self.modified_on,
            "activated_on": self.activated_on,
            "last_synced_at": self.last_synced_at.isoformat() if self.last_synced_at else None,
        }
