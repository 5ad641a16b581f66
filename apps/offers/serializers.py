from rest_framework import serializers

from .models import Offer


class OfferSerializer(serializers.ModelSerializer):
    claimed_count = serializers.SerializerMethodField()

    class Meta:
        model = Offer
        fields = [
            'id', 'description', 'min_value', 'max_value', 'discount', 'max_discount',
            'is_unique', 'is_active', 'claimed_count', 'created_at', 'updated_at',
        ]
        read_only_fields = ['created_at', 'updated_at']

    def get_claimed_count(self, obj):
        return obj.claimed_users.count()

    def validate(self, attrs):
        min_value = attrs.get('min_value', getattr(self.instance, 'min_value', None))
        max_value = attrs.get('max_value', getattr(self.instance, 'max_value', None))
        if min_value is not None and max_value is not None and min_value > max_value:
            raise serializers.ValidationError({'max_value': "Maximum value must not be below the minimum value"})
        return attrs
