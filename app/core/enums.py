from enum import Enum


class BoardingStatus(str, Enum):
    DAY = "day"
    BOARDING = "boarding"
    ALL = "all"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ScholarshipAssignmentStatus(str, Enum):
    active = "active"
    revoked = "revoked"


class InvoiceStatus(str, Enum):
    unpaid = "unpaid"
    partial = "partial"
    paid = "paid"


class PaymentMethod(str, Enum):
    CASH = "Cash"
    BANK_DEPOSIT = "Bank Deposit"
    CHEQUE = "Cheque"
    # Only written by the reconciliation backfill, never accepted from clients.
    ADJUSTMENT = "Adjustment"


class PaymentFrequency(str, Enum):
    weekly = "weekly"
    monthly = "monthly"


class PaymentPlanStatus(str, Enum):
    active = "active"
    completed = "completed"


class InstallmentStatus(str, Enum):
    pending = "pending"
    partial = "partial"
    paid = "paid"


class TransactionType(str, Enum):
    debit = "debit"
    credit = "credit"


class ReminderType(str, Enum):
    sms = "sms"
    email = "email"


class AgingCategory(str, Enum):
    CURRENT = "current"
    DAYS_1_30 = "1-30"
    DAYS_31_60 = "31-60"
    DAYS_61_90 = "61-90"
    DAYS_90_PLUS = "90+"
