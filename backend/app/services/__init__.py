# CrewHub Services
from app.services.auth import AuthService
from app.services.login_throttle import LoginThrottlePolicy
from app.services.profile import ProfileService
from app.services.session_tokens import RevocationResult, SessionTokenService, TokenPair
from app.services.token_denylist import InMemoryTokenDenylist, RedisTokenDenylist

__all__ = [
    "AuthService",
    "InMemoryTokenDenylist",
    "LoginThrottlePolicy",
    "ProfileService",
    "RedisTokenDenylist",
    "RevocationResult",
    "SessionTokenService",
    "TokenPair",
]
