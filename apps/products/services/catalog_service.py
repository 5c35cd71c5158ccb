"""
Catalog lookup used by checkout pricing.
"""
from typing import Dict, Iterable

from ..models import Product


class CatalogService:
    """Read-only access to products and their variants"""

    @staticmethod
    def get_products_by_ids(product_ids: Iterable) -> Dict[str, Product]:
        """Fetch products with variants for a set of ids, keyed by str(id)"""
        ids = set()
        for product_id in product_ids:
            try:
                ids.add(int(product_id))
            except (TypeError, ValueError):
                continue

        products = Product.objects.filter(id__in=ids).prefetch_related('variants')
        return {str(product.id): product for product in products}
