from .Clock import utc_now, ensure_utc, new_id
from .Logger import get_logger
from .PasswordHashingStrategy import PasswordHashingStrategy
from .TokenStrategy import TokenStrategy

__all__ = [
    'utc_now',
    'ensure_utc',
    'new_id',
    'get_logger',
    'PasswordHashingStrategy',
    'TokenStrategy'
]
