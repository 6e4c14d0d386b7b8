from slowapi import Limiter
from slowapi.util import get_remote_address

from board.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=not settings.is_testing)

# Shared limit strings
DEFAULT_LIMIT = f"{settings.RATE_LIMIT_PER_MINUTE}/minute"
MUTATION_LIMIT = f"{max(1, settings.RATE_LIMIT_PER_MINUTE // 2)}/minute"
