import pytest
from rest_framework.authtoken.models import Token

from apps.authentication.models import User
from apps.security.models import Device, SecurityEvent, SecurityProfile

pytestmark = pytest.mark.django_db

PASSWORD = "s3cure-Passw0rd"
CHROME_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


def login(client, email, password=PASSWORD, **headers):
    return client.post("/api/auth/login/", {"email": email, "password": password}, format="json", **headers)


class TestRegister:
    def test_student_registration_returns_token(self, api_client, campus):
        response = api_client.post("/api/auth/register/", {
            "name": "Asha Rao",
            "email": "Asha@Example.com",
            "password": PASSWORD,
            "role": "student",
            "campus": campus.id,
            "phone": "9876543210",
        }, format="json")

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        user = User.objects.get(email="asha@example.com")
        assert body["data"]["token"] == Token.objects.get(user=user).key
        assert SecurityProfile.objects.filter(user=user).exists()

    def test_student_requires_campus(self, api_client):
        response = api_client.post("/api/auth/register/", {
            "name": "No Campus",
            "email": "nocampus@example.com",
            "password": PASSWORD,
            "role": "student",
        }, format="json")

        assert response.status_code == 400
        assert response.json()["message"] == "Validation errors"
        assert "campus" in response.json()["errors"]

    def test_admin_cannot_self_register(self, api_client, campus):
        response = api_client.post("/api/auth/register/", {
            "name": "Sneaky",
            "email": "sneaky@example.com",
            "password": PASSWORD,
            "role": "admin",
            "campus": campus.id,
        }, format="json")

        assert response.status_code == 400
        assert "role" in response.json()["errors"]

    def test_duplicate_email_rejected(self, api_client, student, campus):
        response = api_client.post("/api/auth/register/", {
            "name": "Copy",
            "email": student.email.upper(),
            "password": PASSWORD,
            "role": "student",
            "campus": campus.id,
        }, format="json")

        assert response.status_code == 400
        assert "email" in response.json()["errors"]


class TestLogin:
    def test_successful_login_registers_device(self, api_client, student):
        response = login(api_client, student.email, HTTP_USER_AGENT=CHROME_UA)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["token"]
        assert data["user"]["email"] == student.email
        assert data["security"]["isNewDevice"] is True
        assert data["security"]["securityPrompt"]["type"] == "new_device_detected"

        device = Device.objects.get(user=student)
        assert device.name == "Chrome on Windows"
        assert device.device_type == "desktop"
        assert SecurityEvent.objects.filter(user=student, event_type=SecurityEvent.LOGIN).exists()
        student.refresh_from_db()
        assert student.login_count == 1

    def test_known_device_is_not_new(self, api_client, student):
        login(api_client, student.email, HTTP_USER_AGENT=CHROME_UA)
        response = login(api_client, student.email, HTTP_USER_AGENT=CHROME_UA)

        security = response.json()["data"]["security"]
        assert security["isNewDevice"] is False
        assert security["securityPrompt"] is None
        assert Device.objects.get(user=student).session_count == 2

    def test_wrong_password_records_failed_login(self, api_client, student):
        response = login(api_client, student.email, password="wrong-password")

        assert response.status_code == 401
        assert response.json()["success"] is False
        student.refresh_from_db()
        assert student.failed_login_attempts == 1
        assert SecurityEvent.objects.filter(user=student, event_type=SecurityEvent.FAILED_LOGIN).count() == 1

    def test_account_locks_after_five_failures(self, api_client, student):
        for _ in range(5):
            login(api_client, student.email, password="wrong-password")

        response = login(api_client, student.email)

        assert response.status_code == 403
        assert "locked" in response.json()["message"]
        assert SecurityEvent.objects.filter(user=student, event_type=SecurityEvent.ACCOUNT_LOCKED).exists()

    def test_banned_user_cannot_login(self, api_client, student):
        student.is_banned = True
        student.save()

        response = login(api_client, student.email)

        assert response.status_code == 403
        assert response.json()["message"] == "Your account has been banned. Contact support."

    def test_device_reuse_alerts_admins(self, api_client, student, other_student, admin_user):
        login(api_client, student.email, HTTP_USER_AGENT=CHROME_UA)
        response = login(api_client, other_student.email, HTTP_USER_AGENT=CHROME_UA)

        security = response.json()["data"]["security"]
        assert security["requiresVerification"] is True
        assert security["securityPrompt"]["type"] == "verification_recommended"
        assert admin_user.notifications.filter(title="Suspected device reuse").exists()
        assert SecurityEvent.objects.filter(
            user=other_student,
            event_type=SecurityEvent.SUSPICIOUS_LOGIN,
            risk_level=SecurityEvent.RISK_HIGH,
        ).exists()


class TestSession:
    def test_me(self, client_for, student):
        response = client_for(student).get("/api/auth/me/")

        assert response.status_code == 200
        assert response.json()["data"]["email"] == student.email

    def test_me_requires_authentication(self, api_client):
        response = api_client.get("/api/auth/me/")

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_banned_token_is_refused(self, client_for, student):
        client = client_for(student)
        student.is_banned = True
        student.save()

        response = client.get("/api/auth/me/")

        assert response.status_code == 403

    def test_logout_deletes_token(self, client_for, student):
        response = client_for(student).post("/api/auth/logout/")

        assert response.status_code == 200
        assert not Token.objects.filter(user=student).exists()

    def test_change_password(self, client_for, student):
        client = client_for(student)
        response = client.post("/api/auth/change-password/", {
            "old_password": PASSWORD,
            "new_password": "an0ther-Passw0rd",
        }, format="json")

        assert response.status_code == 200
        student.refresh_from_db()
        assert student.check_password("an0ther-Passw0rd")
        assert student.last_password_change is not None
        assert SecurityEvent.objects.filter(user=student, event_type=SecurityEvent.PASSWORD_CHANGE).exists()

    def test_change_password_checks_old_password(self, client_for, student):
        response = client_for(student).post("/api/auth/change-password/", {
            "old_password": "not-my-password",
            "new_password": "an0ther-Passw0rd",
        }, format="json")

        assert response.status_code == 400
        assert response.json()["message"] == "Current password is incorrect"


class TestProfile:
    def test_profile_includes_campus(self, client_for, student):
        response = client_for(student).get("/api/auth/profile/")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["campus"]["code"] == "NC"
        assert data["bio"] == ""

    def test_update_records_security_event(self, client_for, student):
        response = client_for(student).put("/api/auth/profile/", {
            "name": "Asha R",
            "bio": "Chai before class",
            "date_of_birth": "2004-05-17",
            "email": "changed@example.com",
        }, format="json")

        assert response.status_code == 200
        student.refresh_from_db()
        assert student.name == "Asha R"
        assert str(student.date_of_birth) == "2004-05-17"
        assert student.email != "changed@example.com"
        event = SecurityEvent.objects.get(user=student, event_type=SecurityEvent.PROFILE_UPDATE)
        assert event.description == "Profile updated: bio, date_of_birth, name"

    def test_invalid_phone(self, client_for, student):
        response = client_for(student).patch("/api/auth/profile/", {"phone": "12345"}, format="json")

        assert response.status_code == 400
        assert "phone" in response.json()["errors"]
