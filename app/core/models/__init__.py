from app.core.models.school import School
from app.core.models.student import Student
from app.core.models.fee_structure import FeeStructure
from app.core.models.student_fee_override import StudentFeeOverride
from app.core.models.scholarship import Scholarship, StudentScholarship
from app.core.models.invoice import Invoice, InvoiceItem
from app.core.models.payment_plan import PaymentPlan, PlanInstallment
from app.core.models.fee_payment import FeePayment
from app.core.models.finance_transaction import FinanceTransaction
from app.core.models.receipt_counter import ReceiptCounter
from app.core.models.expense import Expense
from app.core.models.fee_audit_log import FeeAuditLog

__all__ = [
    "School",
    "Student",
    "FeeStructure",
    "StudentFeeOverride",
    "Scholarship",
    "StudentScholarship",
    "Invoice",
    "InvoiceItem",
    "PaymentPlan",
    "PlanInstallment",
    "FeePayment",
    "FinanceTransaction",
    "ReceiptCounter",
    "Expense",
    "FeeAuditLog",
]
