"""
Caching for small, frequently read tables: the shop info row and the category list.

Both are read on nearly every quote, checklist and import request.
Entries are refreshed from post_save/post_delete signals.
"""
from django.core.cache import cache
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

logger = logging.getLogger(__name__)

SHOP_INFO_KEY = 'shop_info'
CATEGORY_LIST_KEY = 'category_list'

# Cache TTL (Time To Live) in seconds
SHOP_INFO_CACHE_TTL = 900  # 15 minutes
CATEGORY_LIST_CACHE_TTL = 600  # 10 minutes


# ==================== SHOP INFO CACHING ====================

def get_cached_shop_info():
    """Return the shop info as a dict, loading it from the database on a miss"""
    cached_data = cache.get(SHOP_INFO_KEY)
    if cached_data is not None:
        logger.debug("Cache hit for shop info")
        return cached_data

    from gestionale.core.models import ShopInfo
    from gestionale.core.serializers import ShopInfoSerializer

    data = dict(ShopInfoSerializer(ShopInfo.get_solo()).data)
    cache.set(SHOP_INFO_KEY, data, SHOP_INFO_CACHE_TTL)
    return data


def invalidate_shop_info_cache():
    cache.delete(SHOP_INFO_KEY)
    logger.debug("Invalidated shop info cache")


# ==================== CATEGORY CACHING ====================

def get_cached_category_list():
    """Return the serialized category list, ordered by name"""
    cached_data = cache.get(CATEGORY_LIST_KEY)
    if cached_data is not None:
        logger.debug("Cache hit for category list")
        return cached_data

    from django.db.models import Count
    from gestionale.catalog.models import Category
    from gestionale.catalog.serializers import CategorySerializer

    queryset = Category.objects.annotate(product_count=Count('products')).order_by('name')
    data = [dict(row) for row in CategorySerializer(queryset, many=True).data]
    cache.set(CATEGORY_LIST_KEY, data, CATEGORY_LIST_CACHE_TTL)
    return data


def invalidate_category_list_cache():
    cache.delete(CATEGORY_LIST_KEY)
    logger.debug("Invalidated category list cache")


# ==================== DJANGO SIGNALS ====================

@receiver(post_save)
def model_post_save(sender, instance, **kwargs):
    """Invalidate cached copies when a cached model is saved"""
    model_name = sender.__name__

    if model_name == 'ShopInfo':
        invalidate_shop_info_cache()
    elif model_name in ('Category', 'Product'):
        # Product changes alter the per-category product counts
        invalidate_category_list_cache()


@receiver(post_delete)
def model_post_delete(sender, instance, **kwargs):
    """Invalidate cached copies when a cached model is deleted"""
    model_name = sender.__name__

    if model_name == 'ShopInfo':
        invalidate_shop_info_cache()
    elif model_name in ('Category', 'Product'):
        # Product changes alter the per-category product counts
        invalidate_category_list_cache()
