from django.contrib import admin

from .models import Profile


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "store_name", "is_blocked", "subscription_date", "created_at")
    list_filter = ("is_blocked",)
    search_fields = ("user__username", "user__email", "store_name")
    actions = ["renew_subscription"]

    @admin.action(description="Obunani yangilash")
    def renew_subscription(self, request, queryset):
        for profile in queryset:
            profile.renew()
