from .gateway import ProviderGateway, RateLimitState, is_rate_limit_error

__all__ = ["ProviderGateway", "RateLimitState", "is_rate_limit_error"]
