from datetime import timedelta

from django.db import models
from django.contrib.auth.models import AbstractUser, BaseUserManager
from django.core.validators import RegexValidator
from django.utils import timezone


class UserManager(BaseUserManager):
    """Email is the login identifier; there is no username."""

    use_in_migrations = True

    def _create_user(self, email, password, **extra_fields):
        if not email:
            raise ValueError("The email address must be set")
        email = self.normalize_email(email).lower()
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_user(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(email, password, **extra_fields)

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("role", User.ROLE_ADMIN)
        return self._create_user(email, password, **extra_fields)


class User(AbstractUser):
    """Campus Bites account with role-based access."""

    ROLE_STUDENT = 'student'
    ROLE_CANTEEN = 'canteen'
    ROLE_CAMPUS = 'campus'
    ROLE_ADMIN = 'admin'

    ROLE_CHOICES = [
        (ROLE_STUDENT, 'Student'),
        (ROLE_CANTEEN, 'Canteen'),
        (ROLE_CAMPUS, 'Campus'),
        (ROLE_ADMIN, 'Admin'),
    ]

    username = None
    first_name = None
    last_name = None

    name = models.CharField(max_length=150)
    email = models.EmailField(unique=True, db_index=True)
    phone_regex = RegexValidator(
        regex=r'^[6-9]\d{9}$',
        message="Phone number must be a 10 digit Indian mobile number"
    )
    phone = models.CharField(validators=[phone_regex], max_length=10, blank=True)
    bio = models.CharField(max_length=500, blank=True)
    address = models.CharField(max_length=255, blank=True)
    date_of_birth = models.DateField(blank=True, null=True)

    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_STUDENT)
    campus = models.ForeignKey(
        'canteens.Campus',
        on_delete=models.SET_NULL,
        related_name='users',
        blank=True,
        null=True
    )

    is_banned = models.BooleanField(default=False)
    is_deleted = models.BooleanField(default=False)

    updated_at = models.DateTimeField(auto_now=True)
    last_password_change = models.DateTimeField(blank=True, null=True)

    # Activity tracking
    login_count = models.PositiveIntegerField(default=0)
    failed_login_attempts = models.PositiveIntegerField(default=0)
    account_locked_until = models.DateTimeField(blank=True, null=True)

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = ['name']

    objects = UserManager()

    class Meta:
        db_table = 'auth_user'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['-date_joined']
        indexes = [
            models.Index(fields=['role']),
        ]

    def __str__(self):
        return f"{self.name} ({self.email})"

    def get_full_name(self):
        return self.name

    def get_short_name(self):
        return self.name.split(" ")[0] if self.name else self.email

    def is_student(self):
        return self.role == self.ROLE_STUDENT

    def is_canteen_owner(self):
        return self.role == self.ROLE_CANTEEN

    def is_admin(self):
        return self.role == self.ROLE_ADMIN or self.is_superuser

    def get_canteen(self):
        """The vendor's canteen, if they run one."""
        return self.canteens.filter(is_deleted=False).first()

    def set_password(self, raw_password):
        super().set_password(raw_password)
        self.last_password_change = timezone.now()

    def increment_login_count(self):
        """Increment user's login count"""
        self.login_count += 1
        self.failed_login_attempts = 0
        self.save(update_fields=['login_count', 'failed_login_attempts'])

    def increment_failed_login(self):
        """Increment failed login attempts, locking after five in a row."""
        self.failed_login_attempts += 1
        if self.failed_login_attempts >= 5:
            self.account_locked_until = timezone.now() + timedelta(minutes=30)
        self.save(update_fields=['failed_login_attempts', 'account_locked_until'])

    def is_account_locked(self):
        """Check if account is currently locked"""
        if self.account_locked_until:
            if timezone.now() < self.account_locked_until:
                return True
            self.account_locked_until = None
            self.failed_login_attempts = 0
            self.save(update_fields=['account_locked_until', 'failed_login_attempts'])
        return False
