"""ORM Models — SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Account is the aggregate root; schedules, history and notifications scoped by account

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs
"""

from autopay.models.account import Account  # noqa: F401
from autopay.models.scheduled_payment import ScheduledPayment  # noqa: F401
from autopay.models.payment_history import PaymentHistory  # noqa: F401
from autopay.models.notification import Notification  # noqa: F401
