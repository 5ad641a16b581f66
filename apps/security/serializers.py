from rest_framework import serializers

from .models import Device, SecurityEvent, SecurityProfile


class DeviceSerializer(serializers.ModelSerializer):
    class Meta:
        model = Device
        fields = [
            'device_id', 'name', 'device_type', 'browser', 'os', 'ip', 'city', 'country',
            'campus', 'first_seen', 'last_active', 'is_active', 'is_trusted', 'session_count',
        ]
        read_only_fields = fields


class SecurityEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = SecurityEvent
        fields = [
            'id', 'event_type', 'description', 'device_id', 'ip', 'location',
            'risk_level', 'resolved', 'timestamp',
        ]
        read_only_fields = fields


class ManageDeviceSerializer(serializers.Serializer):
    device_id = serializers.CharField(max_length=64)
    action = serializers.ChoiceField(choices=['trust', 'remove', 'rename'])
    new_name = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')


class SendCodeSerializer(serializers.Serializer):
    purpose = serializers.CharField(max_length=50, required=False, default='login_verification')


class VerifyCodeSerializer(serializers.Serializer):
    code = serializers.RegexField(r'^\d{6}$', error_messages={'invalid': "Enter the 6 digit code"})
    purpose = serializers.CharField(max_length=50, required=False, default='login_verification')


class SecuritySettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = SecurityProfile
        fields = ['email_notifications', 'login_alerts', 'device_management', 'max_devices']


class EducationPromptSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['shown', 'dismissed'])


class RecoveryCheckSerializer(serializers.Serializer):
    email = serializers.EmailField()
