# Importing the module registers tables with Base for create_all()
from .core import (  # noqa: F401
    # Enums
    TeaGrade, InvoiceStatus, UserRoleCode,

    # Identity & settings
    User, AppSetting,

    # Growers, intake, rates, deductions
    Customer, Collection, MonthlyRate, Deduction,

    # Invoices & audit
    Invoice, AuditLog,
)

__all__ = [
    "TeaGrade", "InvoiceStatus", "UserRoleCode",
    "User", "AppSetting",
    "Customer", "Collection", "MonthlyRate", "Deduction",
    "Invoice", "AuditLog",
]
