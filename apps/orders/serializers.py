from rest_framework import serializers

from .models import Order, OrderItem, OrderHistory, Penalty


class OrderLineInputSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1, required=False, default=1)


class OrderCreateSerializer(serializers.Serializer):
    items = OrderLineInputSerializer(many=True, allow_empty=False)
    pickup_time = serializers.DateTimeField()
    canteen_id = serializers.IntegerField()
    offer_id = serializers.IntegerField(required=False, allow_null=True)


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[
        Order.STATUS_PREPARING,
        Order.STATUS_READY,
        Order.STATUS_COMPLETED,
        Order.STATUS_CANCELLED,
    ])


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = ['item', 'quantity', 'name_at_purchase', 'price_at_purchase']


class OrderHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderHistory
        fields = ['status_from', 'status_to', 'notes', 'created_at']


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    canteen_name = serializers.CharField(source='canteen.name', read_only=True)
    student_name = serializers.CharField(source='student.name', read_only=True)

    class Meta:
        model = Order
        fields = [
            'id', 'order_number', 'student', 'student_name', 'canteen', 'canteen_name',
            'group_order', 'items', 'total', 'penalty_amount', 'offer', 'discount_amount',
            'status', 'payment_status', 'pickup_time', 'paid_at', 'created_at', 'updated_at',
        ]


class OrderDetailSerializer(OrderSerializer):
    history = OrderHistorySerializer(many=True, read_only=True)

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + ['history']


class PenaltySerializer(serializers.ModelSerializer):
    class Meta:
        model = Penalty
        fields = ['id', 'order', 'canteen', 'amount', 'reason', 'is_paid', 'created_at']
