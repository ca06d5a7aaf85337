from .merchant_intelligence import MerchantIntelligence

__all__ = [
    "MerchantIntelligence",
]
