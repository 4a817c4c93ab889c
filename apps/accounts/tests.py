from datetime import timedelta

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import RefreshToken

from .models import Profile

User = get_user_model()
PASSWORD = "Kuchli-parol-2024"


def make_shop(email="dukon@nasiya.uz", store_name="Baraka Market", **profile_fields):
    user = User.objects.create_user(username=email, email=email, password=PASSWORD, first_name="Alisher")
    Profile.objects.create(user=user, store_name=store_name, **profile_fields)
    return user


class AuthApiTests(APITestCase):
    def setUp(self):
        cache.clear()

    def _login(self, email, password=PASSWORD):
        return self.client.post("/api/auth/token/", {"email": email, "password": password}, format="json")

    def test_register_creates_user_and_profile(self):
        resp = self.client.post(
            "/api/auth/register/",
            {"email": "Yangi@Nasiya.uz", "password": PASSWORD, "name": "Alisher", "store_name": "Super Market"},
            format="json",
        )
        self.assertEqual(resp.status_code, 201)
        user = User.objects.get(username="yangi@nasiya.uz")
        self.assertEqual(user.profile.store_name, "Super Market")
        self.assertFalse(resp.data["is_admin"])
        self.assertFalse(resp.data["is_blocked"])

    def test_register_rejects_duplicate_email(self):
        make_shop(email="band@nasiya.uz")
        resp = self.client.post(
            "/api/auth/register/",
            {"email": "BAND@nasiya.uz", "password": PASSWORD, "name": "Boshqa"},
            format="json",
        )
        self.assertEqual(resp.status_code, 400)
        self.assertIn("email", resp.data)

    def test_register_rejects_short_password(self):
        resp = self.client.post(
            "/api/auth/register/",
            {"email": "qisqa@nasiya.uz", "password": "12345", "name": "Qisqa"},
            format="json",
        )
        self.assertEqual(resp.status_code, 400)

    def test_login_by_email_returns_token_pair(self):
        make_shop()
        resp = self._login("dukon@nasiya.uz")
        self.assertEqual(resp.status_code, 200)
        self.assertIn("access", resp.data)
        self.assertIn("refresh", resp.data)
        self.assertEqual(resp.data["user"]["store_name"], "Baraka Market")

    def test_login_wrong_password(self):
        make_shop()
        resp = self._login("dukon@nasiya.uz", "noto'g'ri-parol")
        self.assertEqual(resp.status_code, 401)

    def test_login_blocks_expired_subscription(self):
        user = make_shop(subscription_date=timezone.now() - timedelta(days=31))
        resp = self._login("dukon@nasiya.uz")
        self.assertEqual(resp.status_code, 403)
        user.profile.refresh_from_db()
        self.assertTrue(user.profile.is_blocked)

    def test_admin_never_expires(self):
        admin = make_shop(email="admin@nasiya.uz", subscription_date=timezone.now() - timedelta(days=400))
        admin.is_staff = True
        admin.save()
        resp = self._login("admin@nasiya.uz")
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.data["user"]["is_admin"])
        self.assertIsNone(resp.data["user"]["subscription_expires_at"])

    def test_me(self):
        user = make_shop()
        token = RefreshToken.for_user(user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.access_token}")
        resp = self.client.get("/api/auth/me/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["email"], "dukon@nasiya.uz")
        self.assertEqual(resp.data["name"], "Alisher")

    def test_blocked_shop_cannot_use_ledger(self):
        user = make_shop(is_blocked=True)
        token = RefreshToken.for_user(user)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.access_token}")
        resp = self.client.get("/api/customers/")
        self.assertEqual(resp.status_code, 403)

    def test_expired_token_holder_is_blocked_on_next_request(self):
        user = make_shop()
        token = RefreshToken.for_user(user)
        Profile.objects.filter(user=user).update(subscription_date=timezone.now() - timedelta(days=45))
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.access_token}")
        resp = self.client.get("/api/dashboard/")
        self.assertEqual(resp.status_code, 403)
        self.assertTrue(Profile.objects.get(user=user).is_blocked)

    def test_anonymous_is_rejected(self):
        resp = self.client.get("/api/customers/")
        self.assertEqual(resp.status_code, 401)


class ShopAdminApiTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.admin = User.objects.create_user(
            username="admin@nasiya.uz", email="admin@nasiya.uz", password=PASSWORD, is_staff=True
        )
        token = RefreshToken.for_user(self.admin)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.access_token}")
        self.shop = make_shop()
        make_shop(email="bloklangan@nasiya.uz", store_name="Eski Market", is_blocked=True)

    def test_list_shops_with_stats(self):
        resp = self.client.get("/api/admin/shops/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.data["stats"], {"total": 2, "active": 1, "blocked": 1})
        emails = {row["email"] for row in resp.data["results"]}
        self.assertNotIn("admin@nasiya.uz", emails)

    def test_non_admin_is_forbidden(self):
        token = RefreshToken.for_user(self.shop)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {token.access_token}")
        resp = self.client.get("/api/admin/shops/")
        self.assertEqual(resp.status_code, 403)

    def test_create_shop(self):
        resp = self.client.post(
            "/api/admin/shops/",
            {"email": "yangi@nasiya.uz", "password": PASSWORD, "name": "Azizbek", "store_name": "Yangi Market"},
            format="json",
        )
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.data["store_name"], "Yangi Market")

    def test_toggle_block(self):
        url = f"/api/admin/shops/{self.shop.id}/toggle-block/"
        resp = self.client.post(url)
        self.assertTrue(resp.data["is_blocked"])
        resp = self.client.post(url)
        self.assertFalse(resp.data["is_blocked"])

    def test_set_password(self):
        resp = self.client.post(
            f"/api/admin/shops/{self.shop.id}/set-password/", {"password": "Yangi-parol-77"}, format="json"
        )
        self.assertEqual(resp.status_code, 200)
        self.shop.refresh_from_db()
        self.assertTrue(self.shop.check_password("Yangi-parol-77"))

    def test_update_login(self):
        resp = self.client.post(
            f"/api/admin/shops/{self.shop.id}/update-login/", {"email": "Boshqa@Nasiya.uz"}, format="json"
        )
        self.assertEqual(resp.status_code, 200)
        self.shop.refresh_from_db()
        self.assertEqual(self.shop.username, "boshqa@nasiya.uz")

    def test_update_login_rejects_taken_email(self):
        resp = self.client.post(
            f"/api/admin/shops/{self.shop.id}/update-login/", {"email": "bloklangan@nasiya.uz"}, format="json"
        )
        self.assertEqual(resp.status_code, 400)

    def test_renew_unblocks(self):
        blocked = User.objects.get(username="bloklangan@nasiya.uz")
        resp = self.client.post(f"/api/admin/shops/{blocked.id}/renew/")
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.data["is_blocked"])

    def test_admin_cannot_target_staff(self):
        resp = self.client.post(f"/api/admin/shops/{self.admin.id}/toggle-block/")
        self.assertEqual(resp.status_code, 404)
