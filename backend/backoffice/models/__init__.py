from .auth import User, UserRole, SessionToken
from .companies import Company, PaymentMethod
from .consumption import ConsumptionRecord, MealSize
from .closures import Closure, ClosureStatus, ClosureAdjustment
from .document_sends import DocumentSend, DocumentKind, SendStatus
from .settings import Setting

__all__ = [
    'User', 'UserRole', 'SessionToken',
    'Company', 'PaymentMethod',
    'ConsumptionRecord', 'MealSize',
    'Closure', 'ClosureStatus', 'ClosureAdjustment',
    'DocumentSend', 'DocumentKind', 'SendStatus',
    'Setting',
]
