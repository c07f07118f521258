# Overview: Flask extension instances for database, migrations, and audit delivery.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .services.audit_sink import AuditSink

db = SQLAlchemy()
migrate = Migrate()
audit_sink = AuditSink()
