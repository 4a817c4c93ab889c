from django.urls import include, path
from rest_framework.routers import DefaultRouter

from . import views

router = DefaultRouter()
router.register("customers", views.CustomerViewSet, basename="customer")
router.register("transactions", views.TransactionViewSet, basename="transaction")

urlpatterns = [
    path("settings/", views.shop_settings, name="ledger_settings"),
    path("settings/onboarding/", views.onboarding, name="ledger_onboarding"),
    path("dashboard/", views.dashboard, name="ledger_dashboard"),
    path("reports/", views.report, name="ledger_report"),
    path("reports/export.pdf", views.report_pdf, name="ledger_report_pdf"),
    path("notifications/", views.notifications, name="ledger_notifications"),
    path("", include(router.urls)),
]
