from .tenancy import Organization
from .auth import User, SessionToken
from .security import SecurityEvent
from .consignors import Consignor
from .inventory import Item
from .sales import Transaction
from .payouts import Payout, PayoutLine
from .statements import Statement

__all__ = [
    'Organization',
    'User', 'SessionToken', 'SecurityEvent',
    'Consignor', 'Item', 'Transaction',
    'Payout', 'PayoutLine', 'Statement',
]
