from rest_framework import serializers

from apps.orders.serializers import OrderLineInputSerializer

from .models import GroupOrder, GroupOrderItem, GroupOrderShare


class GroupOrderCreateSerializer(serializers.Serializer):
    canteen_id = serializers.IntegerField()


class JoinGroupOrderSerializer(serializers.Serializer):
    group_link = serializers.CharField()


class GroupItemsSerializer(serializers.Serializer):
    items = OrderLineInputSerializer(many=True, allow_empty=False)


class ShareAmountSerializer(serializers.Serializer):
    user = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)


class GroupCheckoutSerializer(serializers.Serializer):
    items = OrderLineInputSerializer(many=True, required=False, allow_empty=False)
    split_type = serializers.ChoiceField(choices=[c[0] for c in GroupOrder.SPLIT_CHOICES], default=GroupOrder.SPLIT_EQUAL)
    amounts = ShareAmountSerializer(many=True, required=False)
    payer = serializers.IntegerField(required=False)
    pickup_time = serializers.DateTimeField(required=False)

    def validate(self, attrs):
        if attrs["split_type"] == GroupOrder.SPLIT_CUSTOM and not attrs.get("amounts"):
            raise serializers.ValidationError({"amounts": "Amounts are required for a custom split"})
        return attrs


class GroupOrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = GroupOrderItem
        fields = ['item', 'quantity', 'name_at_purchase', 'price_at_purchase', 'added_by']


class GroupOrderShareSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.name', read_only=True)
    razorpay_order_id = serializers.CharField(source='transaction.razorpay_order_id', read_only=True, default=None)

    class Meta:
        model = GroupOrderShare
        fields = ['user', 'user_name', 'amount', 'order', 'transaction', 'razorpay_order_id', 'status']


class GroupOrderSerializer(serializers.ModelSerializer):
    items = GroupOrderItemSerializer(many=True, read_only=True)
    shares = GroupOrderShareSerializer(many=True, read_only=True)
    members = serializers.SerializerMethodField()
    canteen_name = serializers.CharField(source='canteen.name', read_only=True)

    class Meta:
        model = GroupOrder
        fields = [
            'id', 'group_link', 'qr_code_url', 'creator', 'members', 'canteen', 'canteen_name',
            'items', 'total_amount', 'split_type', 'payer', 'status', 'pickup_time', 'shares',
            'created_at',
        ]

    def get_members(self, obj):
        return [{"id": member.id, "name": member.name, "email": member.email} for member in obj.members.all()]
