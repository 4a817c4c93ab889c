from django.contrib import admin

from .models import Customer, ShopSettings, Transaction


class TransactionInline(admin.TabularInline):
    model = Transaction
    extra = 0
    fields = ("kind", "amount", "note", "due_date", "created_at")
    readonly_fields = ("created_at",)


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ("name", "phone", "owner", "balance", "created_at")
    list_filter = ("owner",)
    search_fields = ("name", "phone", "note")
    inlines = [TransactionInline]


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("customer", "kind", "amount", "due_date", "owner", "created_at")
    list_filter = ("kind", "owner")
    search_fields = ("customer__name", "customer__phone", "note")
    date_hierarchy = "created_at"


@admin.register(ShopSettings)
class ShopSettingsAdmin(admin.ModelAdmin):
    list_display = ("store_name", "owner_name", "phone", "currency", "is_setup_completed", "owner")
    list_filter = ("currency", "is_setup_completed")
    search_fields = ("store_name", "owner_name", "phone")
