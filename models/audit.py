import json

from models._base import db, isoformat, utcnow


class AuditLog(db.Model):
    """Append-only record of an admin mutation."""

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("ix_audit_logs_entity", "entity_type", "entity_id"),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    actor_email = db.Column(db.String(255), nullable=False)
    actor_role = db.Column(db.String(20), nullable=False)
    action = db.Column(db.String(50), nullable=False)
    entity_type = db.Column(db.String(50), nullable=False)
    entity_id = db.Column(db.String(36), nullable=False)
    before_json = db.Column(db.Text, default="{}")
    after_json = db.Column(db.Text, default="{}")
    ip_address = db.Column(db.String(45))
    user_agent = db.Column(db.String(512))
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    @property
    def before(self):
        try:
            return json.loads(self.before_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    @before.setter
    def before(self, value):
        self.before_json = json.dumps(value)

    @property
    def after(self):
        try:
            return json.loads(self.after_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    @after.setter
    def after(self, value):
        self.after_json = json.dumps(value)

    def to_dict(self):
        return {
            "id": self.id,
            "actorEmail": self.actor_email,
            "actorRole": self.actor_role,
            "action": self.action,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "before": self.before,
            "after": self.after,
            "ipAddress": self.ip_address,
            "userAgent": self.user_agent,
            "createdAt": isoformat(self.created_at),
        }
