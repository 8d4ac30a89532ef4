from app.db.base_class import Base
from app.models.tenant import Tenant
from app.models.custom_domain import CustomDomain
from app.models.audit import AuditLog
