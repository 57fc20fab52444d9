"""Database models."""

from db import Base

# Import all models so Alembic can detect them
from models.profile import Profile
from models.project import Project
from models.milestone import Milestone
from models.payment import Payment, PaymentMethod
from models.invoice import Invoice
from models.document import Document
from models.notification import Notification

__all__ = [
    "Base",
    "Profile",
    "Project",
    "Milestone",
    "Payment",
    "PaymentMethod",
    "Invoice",
    "Document",
    "Notification",
]
