from django.urls import include, path
from rest_framework.routers import SimpleRouter
from rest_framework_simplejwt.views import TokenRefreshView

from . import views

router = SimpleRouter()
router.register("admin/shops", views.ShopAdminViewSet, basename="admin-shops")

urlpatterns = [
    path("auth/register/", views.register, name="auth-register"),
    path("auth/token/", views.ShopTokenObtainPairView.as_view(), name="jwt-token"),
    path("auth/refresh/", TokenRefreshView.as_view(), name="jwt-refresh"),
    path("auth/me/", views.me, name="auth-me"),
    path("", include(router.urls)),
]
