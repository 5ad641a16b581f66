import hashlib
from datetime import timedelta

from django.conf import settings
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import models
from django.utils import timezone


def default_education_prompts():
    return {
        "passwordSecurity": {"shown": False, "dismissedAt": None},
        "deviceManagement": {"shown": False, "dismissedAt": None},
        "twoFactor": {"shown": False, "dismissedAt": None},
    }


class SecurityProfile(models.Model):
    """Per-user security settings and running score."""

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='security_profile'
    )

    # Settings
    email_notifications = models.BooleanField(default=True)
    sms_notifications = models.BooleanField(default=False)
    two_factor_enabled = models.BooleanField(default=False)
    login_alerts = models.BooleanField(default=True)
    device_management = models.BooleanField(default=True)
    auto_lockout = models.BooleanField(default=False)
    max_devices = models.PositiveSmallIntegerField(
        default=5,
        validators=[MinValueValidator(1), MaxValueValidator(20)]
    )

    security_score = models.PositiveSmallIntegerField(default=100)
    suspicious_activity_count = models.PositiveIntegerField(default=0)
    education_prompts = models.JSONField(default=default_education_prompts)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'security_profile'

    def __str__(self):
        return f"Security profile for {self.user.email} ({self.security_score})"

    @property
    def score_category(self):
        if self.security_score >= 80:
            return 'excellent'
        if self.security_score >= 60:
            return 'good'
        return 'needs_improvement'

    def settings_dict(self):
        return {
            'emailNotifications': self.email_notifications,
            'smsNotifications': self.sms_notifications,
            'twoFactorEnabled': self.two_factor_enabled,
            'loginAlerts': self.login_alerts,
            'deviceManagement': self.device_management,
            'autoLockout': self.auto_lockout,
            'maxDevices': self.max_devices,
        }


class Device(models.Model):
    TYPE_MOBILE = 'mobile'
    TYPE_DESKTOP = 'desktop'
    TYPE_TABLET = 'tablet'
    TYPE_UNKNOWN = 'unknown'

    TYPE_CHOICES = [
        (TYPE_MOBILE, 'Mobile'),
        (TYPE_DESKTOP, 'Desktop'),
        (TYPE_TABLET, 'Tablet'),
        (TYPE_UNKNOWN, 'Unknown'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='devices')
    device_id = models.CharField(max_length=64, db_index=True)
    name = models.CharField(max_length=150, default='Unknown Device')
    device_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default=TYPE_UNKNOWN)
    browser = models.CharField(max_length=100, blank=True)
    os = models.CharField(max_length=100, blank=True)

    ip = models.GenericIPAddressField(blank=True, null=True)
    city = models.CharField(max_length=100, default='Unknown')
    country = models.CharField(max_length=100, default='Unknown')
    campus = models.CharField(max_length=100, default='Unknown')

    first_seen = models.DateTimeField(default=timezone.now)
    last_active = models.DateTimeField(default=timezone.now)
    is_active = models.BooleanField(default=True)
    is_trusted = models.BooleanField(default=False)
    session_count = models.PositiveIntegerField(default=1)

    class Meta:
        db_table = 'security_device'
        ordering = ['-last_active']
        unique_together = ['user', 'device_id']

    def __str__(self):
        return f"{self.name} ({self.user.email})"


class SecurityEvent(models.Model):
    LOGIN = 'login'
    SUSPICIOUS_LOGIN = 'suspicious_login'
    NEW_DEVICE = 'new_device'
    PASSWORD_CHANGE = 'password_change'
    FAILED_LOGIN = 'failed_login'
    VERIFICATION_SENT = 'verification_sent'
    VERIFICATION_SUCCESS = 'verification_success'
    VERIFICATION_FAILED = 'verification_failed'
    ACCOUNT_LOCKED = 'account_locked'
    DEVICE_REMOVED = 'device_removed'
    DEVICE_TRUSTED = 'device_trusted'
    DEVICE_RENAMED = 'device_renamed'
    SETTINGS_UPDATED = 'settings_updated'
    RECOVERY_REQUESTED = 'recovery_requested'
    PROFILE_UPDATE = 'profile_update'

    TYPE_CHOICES = [
        (LOGIN, 'Login'),
        (SUSPICIOUS_LOGIN, 'Suspicious login'),
        (NEW_DEVICE, 'New device'),
        (PASSWORD_CHANGE, 'Password change'),
        (FAILED_LOGIN, 'Failed login'),
        (VERIFICATION_SENT, 'Verification sent'),
        (VERIFICATION_SUCCESS, 'Verification success'),
        (VERIFICATION_FAILED, 'Verification failed'),
        (ACCOUNT_LOCKED, 'Account locked'),
        (DEVICE_REMOVED, 'Device removed'),
        (DEVICE_TRUSTED, 'Device trusted'),
        (DEVICE_RENAMED, 'Device renamed'),
        (SETTINGS_UPDATED, 'Settings updated'),
        (RECOVERY_REQUESTED, 'Recovery requested'),
        (PROFILE_UPDATE, 'Profile update'),
    ]

    RISK_LOW = 'low'
    RISK_MEDIUM = 'medium'
    RISK_HIGH = 'high'

    RISK_CHOICES = [
        (RISK_LOW, 'Low'),
        (RISK_MEDIUM, 'Medium'),
        (RISK_HIGH, 'High'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='security_events')
    event_type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    description = models.CharField(max_length=255)
    device_id = models.CharField(max_length=64, blank=True)
    ip = models.GenericIPAddressField(blank=True, null=True)
    user_agent = models.TextField(blank=True)
    location = models.CharField(max_length=200, blank=True)
    risk_level = models.CharField(max_length=10, choices=RISK_CHOICES, default=RISK_LOW)
    resolved = models.BooleanField(default=False)
    timestamp = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        db_table = 'security_event'
        ordering = ['-timestamp', '-id']
        indexes = [
            models.Index(fields=['user', '-timestamp']),
        ]

    def __str__(self):
        return f"{self.event_type} for {self.user.email} ({self.risk_level})"


class VerificationCode(models.Model):
    """One-time code; only the sha256 digest is stored."""

    CHANNEL_EMAIL = 'email'
    CHANNEL_SMS = 'sms'
    CHANNEL_DEVICE = 'device_verification'

    CHANNEL_CHOICES = [
        (CHANNEL_EMAIL, 'Email'),
        (CHANNEL_SMS, 'SMS'),
        (CHANNEL_DEVICE, 'Device verification'),
    ]

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='verification_codes')
    code = models.CharField(max_length=64)
    channel = models.CharField(max_length=20, choices=CHANNEL_CHOICES, default=CHANNEL_EMAIL)
    purpose = models.CharField(max_length=50, default='login_verification')
    expires_at = models.DateTimeField()
    used = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'security_verification_code'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.purpose} code for {self.user.email}"

    @staticmethod
    def hash_code(code):
        return hashlib.sha256(code.encode()).hexdigest()

    @classmethod
    def issue(cls, user, code, purpose, ttl_minutes, channel=CHANNEL_EMAIL):
        return cls.objects.create(
            user=user,
            code=cls.hash_code(code),
            channel=channel,
            purpose=purpose,
            expires_at=timezone.now() + timedelta(minutes=ttl_minutes),
        )

    @classmethod
    def find_valid(cls, user, code, purpose):
        return cls.objects.filter(
            user=user,
            code=cls.hash_code(code),
            purpose=purpose,
            used=False,
            expires_at__gt=timezone.now(),
        ).first()
