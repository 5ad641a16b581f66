from decimal import Decimal

from django.conf import settings
from rest_framework import serializers

from .models import BankDetails, PayoutRequest, Payout


class BankDetailsSerializer(serializers.ModelSerializer):
    account_number = serializers.CharField(source='masked_account_number', read_only=True)
    canteen_name = serializers.CharField(source='canteen.name', read_only=True)

    class Meta:
        model = BankDetails
        fields = [
            'id', 'canteen', 'canteen_name', 'account_holder_name', 'account_number',
            'ifsc_code', 'bank_name', 'branch_name', 'upi_id', 'is_verified',
            'verified_at', 'verification_notes', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class BankDetailsUpdateSerializer(serializers.ModelSerializer):
    confirm_account_number = serializers.CharField(write_only=True)

    class Meta:
        model = BankDetails
        fields = [
            'account_holder_name', 'account_number', 'confirm_account_number',
            'ifsc_code', 'bank_name', 'branch_name', 'upi_id',
        ]

    def to_internal_value(self, data):
        data = data.copy()
        if isinstance(data.get('ifsc_code'), str):
            data['ifsc_code'] = data['ifsc_code'].strip().upper()
        return super().to_internal_value(data)

    def validate(self, attrs):
        if attrs['account_number'] != attrs.pop('confirm_account_number'):
            raise serializers.ValidationError({'confirm_account_number': "Account numbers do not match"})
        return attrs


class BankVerificationSerializer(serializers.Serializer):
    verified = serializers.BooleanField()
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class PayoutRequestCreateSerializer(serializers.Serializer):
    requested_amount = serializers.DecimalField(max_digits=10, decimal_places=2)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate_requested_amount(self, amount):
        limits = settings.CAMPUS_BITES_SETTINGS
        minimum = Decimal(limits['MIN_PAYOUT_AMOUNT'])
        maximum = Decimal(limits['MAX_PAYOUT_AMOUNT'])
        if amount < minimum:
            raise serializers.ValidationError(f"Minimum payout amount is Rs. {minimum}")
        if amount > maximum:
            raise serializers.ValidationError(f"Maximum payout amount is Rs. {maximum}")
        return amount


class PayoutReviewSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['approve', 'reject'])
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class PayoutProcessSerializer(serializers.Serializer):
    transaction_id = serializers.CharField(max_length=100)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class PayoutRequestSerializer(serializers.ModelSerializer):
    canteen_name = serializers.CharField(source='canteen.name', read_only=True)
    vendor_email = serializers.EmailField(source='vendor.email', read_only=True)

    class Meta:
        model = PayoutRequest
        fields = [
            'id', 'canteen', 'canteen_name', 'vendor', 'vendor_email', 'requested_amount',
            'available_balance', 'status', 'bank_details', 'request_notes', 'admin_notes',
            'rejection_reason', 'failure_reason', 'transaction_id', 'reviewed_at',
            'processed_at', 'created_at',
        ]
        read_only_fields = fields


class PayoutSerializer(serializers.ModelSerializer):
    class Meta:
        model = Payout
        fields = ['id', 'canteen', 'request', 'trn_id', 'date', 'amount', 'notes']
        read_only_fields = fields
