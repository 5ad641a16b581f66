from rest_framework import serializers

from .models import Transaction


class CreatePaymentOrderSerializer(serializers.Serializer):
    order_id = serializers.UUIDField()


class VerifyPaymentSerializer(serializers.Serializer):
    razorpay_order_id = serializers.CharField()
    razorpay_payment_id = serializers.CharField()
    razorpay_signature = serializers.CharField()


class PaymentErrorSerializer(serializers.Serializer):
    code = serializers.CharField(required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    reason = serializers.CharField(required=False, allow_blank=True)


class PaymentFailureSerializer(serializers.Serializer):
    razorpay_order_id = serializers.CharField()
    razorpay_payment_id = serializers.CharField(required=False, allow_blank=True)
    error = PaymentErrorSerializer(required=False)


class RefundSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="Requested by customer")


class TransactionSerializer(serializers.ModelSerializer):
    order_number = serializers.CharField(source='order.order_number', read_only=True)

    class Meta:
        model = Transaction
        fields = [
            'id', 'order', 'order_number', 'razorpay_order_id', 'razorpay_payment_id',
            'amount', 'currency', 'status', 'payment_method', 'failure_reason',
            'refund_id', 'refund_reason', 'refund_status', 'refund_initiated_at',
            'refund_processed_at', 'paid_at', 'refunded_at', 'created_at',
        ]
