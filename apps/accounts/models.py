import logging
from datetime import timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

logger = logging.getLogger(__name__)


class Profile(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="profile",
        verbose_name="Foydalanuvchi",
    )
    store_name = models.CharField("Do'kon nomi", max_length=255, blank=True)
    is_blocked = models.BooleanField("Bloklangan", default=False)
    subscription_date = models.DateTimeField("Obuna sanasi", default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Do'kon hisobi"
        verbose_name_plural = "Do'kon hisoblari"

    def __str__(self):
        return f"{self.store_name or self.user.get_username()}"

    @property
    def is_admin(self) -> bool:
        return bool(self.user.is_staff)

    @property
    def subscription_expires_at(self):
        return self.subscription_date + timedelta(days=settings.NASIYA_SUBSCRIPTION_DAYS)

    def is_subscription_expired(self, now=None) -> bool:
        if self.is_admin:
            return False
        now = now or timezone.now()
        return now > self.subscription_expires_at

    def enforce_subscription(self, now=None) -> bool:
        """Block the account once the paid period is over. Returns the blocked flag."""
        if not self.is_blocked and self.is_subscription_expired(now):
            self.is_blocked = True
            self.save(update_fields=["is_blocked"])
            logger.info("Subscription expired, shop blocked: user=%s", self.user_id)
        return self.is_blocked

    def renew(self, now=None):
        self.subscription_date = now or timezone.now()
        self.is_blocked = False
        self.save(update_fields=["subscription_date", "is_blocked"])


def get_profile(user) -> Profile:
    profile, _ = Profile.objects.get_or_create(
        user=user,
        defaults={"store_name": ""},
    )
    return profile
