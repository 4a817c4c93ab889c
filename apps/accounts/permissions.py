from rest_framework.exceptions import PermissionDenied
from rest_framework.permissions import BasePermission

from .models import get_profile


class ShopBlocked(PermissionDenied):
    default_detail = "Hisobingiz bloklangan. Obunani yangilash uchun administratorga murojaat qiling."
    default_code = "shop_blocked"


class IsActiveShop(BasePermission):
    """Refuse blocked accounts; expired subscriptions are blocked on the spot."""

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        if user.is_staff:
            return True
        if get_profile(user).enforce_subscription():
            raise ShopBlocked()
        return True
