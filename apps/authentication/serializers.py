from django.contrib.auth import password_validation
from rest_framework import serializers

from apps.canteens.models import Campus
from apps.canteens.serializers import CampusSerializer

from .models import User


class UserSerializer(serializers.ModelSerializer):
    campus_name = serializers.CharField(source='campus.name', read_only=True, default=None)

    class Meta:
        model = User
        fields = ['id', 'name', 'email', 'phone', 'role', 'campus', 'campus_name', 'date_joined', 'last_login']
        read_only_fields = fields


class ProfileSerializer(serializers.ModelSerializer):
    campus = CampusSerializer(read_only=True)

    class Meta:
        model = User
        fields = [
            'id', 'name', 'email', 'phone', 'role', 'campus', 'bio', 'address',
            'date_of_birth', 'date_joined', 'last_login',
        ]
        read_only_fields = ['id', 'email', 'role', 'campus', 'date_joined', 'last_login']


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)
    campus = serializers.PrimaryKeyRelatedField(
        queryset=Campus.objects.filter(is_deleted=False),
        required=False,
        allow_null=True
    )

    class Meta:
        model = User
        fields = ['name', 'email', 'password', 'role', 'campus', 'phone']

    def validate_email(self, email):
        email = email.lower()
        if User.objects.filter(email=email).exists():
            raise serializers.ValidationError("A user with this email already exists")
        return email

    def validate_role(self, role):
        if role == User.ROLE_ADMIN:
            raise serializers.ValidationError("Admin accounts cannot be self-registered")
        return role

    def validate(self, attrs):
        if attrs.get('role', User.ROLE_STUDENT) == User.ROLE_STUDENT and not attrs.get('campus'):
            raise serializers.ValidationError({'campus': "Students must select a campus"})
        password_validation.validate_password(attrs['password'])
        return attrs

    def create(self, validated_data):
        return User.objects.create_user(**validated_data)


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class ChangePasswordSerializer(serializers.Serializer):
    old_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=8)

    def validate_new_password(self, value):
        password_validation.validate_password(value, self.context.get('user'))
        return value
