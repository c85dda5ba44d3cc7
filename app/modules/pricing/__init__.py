"""
Pricing module

Work catalog, price lists and the price resolution cascade.
"""

from .models import WorkItem, PriceList, PriceListItem, ClientPriceList, ClientPriceItem, PriceListType
from .resolver import PriceResolver, ClientOverride, PriceListMatch, BasePrice
from .service import PricingService

__all__ = [
    "WorkItem", "PriceList", "PriceListItem", "ClientPriceList", "ClientPriceItem", "PriceListType",
    "PriceResolver", "ClientOverride", "PriceListMatch", "BasePrice",
    "PricingService"
]
