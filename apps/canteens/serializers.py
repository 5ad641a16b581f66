from rest_framework import serializers

from .models import Campus, CampusRequest, Canteen, Item, Review


class CampusSerializer(serializers.ModelSerializer):
    class Meta:
        model = Campus
        fields = ['id', 'name', 'code', 'city']


class CampusRequestSerializer(serializers.ModelSerializer):
    requested_by_name = serializers.CharField(source='requested_by.name', read_only=True)

    class Meta:
        model = CampusRequest
        fields = [
            'id', 'name', 'code', 'city', 'reason', 'requested_by', 'requested_by_name',
            'status', 'campus', 'reviewed_at', 'created_at',
        ]
        read_only_fields = ['requested_by', 'status', 'campus', 'reviewed_at']

    def validate_code(self, code):
        code = code.strip().upper()
        if Campus.objects.filter(code=code).exists():
            raise serializers.ValidationError("A campus with this code already exists")
        return code


class CanteenSerializer(serializers.ModelSerializer):
    campus_name = serializers.CharField(source='campus.name', read_only=True)

    class Meta:
        model = Canteen
        fields = [
            'id', 'name', 'campus', 'campus_name', 'owner', 'is_open',
            'approval_status', 'rejection_reason', 'opening_time', 'closing_time',
            'operating_days', 'average_rating', 'total_reviews', 'created_at',
        ]
        read_only_fields = ['owner', 'approval_status', 'rejection_reason', 'average_rating', 'total_reviews']


class CanteenRegistrationSerializer(serializers.ModelSerializer):
    """Full business details submitted by a vendor for approval."""

    class Meta:
        model = Canteen
        fields = [
            'id', 'name', 'campus', 'owner_name', 'mobile', 'email', 'address',
            'aadhaar_number', 'pan_number', 'gst_number', 'fssai_license',
            'opening_time', 'closing_time', 'operating_days',
        ]
        extra_kwargs = {
            'aadhaar_number': {'required': True},
            'pan_number': {'required': True},
            'gst_number': {'required': True},
        }

    def validate_campus(self, campus):
        if campus.is_deleted:
            raise serializers.ValidationError("Campus not found")
        return campus

    def validate_operating_days(self, days):
        invalid = [day for day in days if day not in Canteen.DAY_CHOICES]
        if invalid:
            raise serializers.ValidationError(f"Invalid operating days: {', '.join(invalid)}")
        return days


class CanteenUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Canteen
        fields = ['name', 'is_open', 'opening_time', 'closing_time', 'operating_days']


class CanteenReviewDecisionSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['approve', 'reject'])
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class ItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = Item
        fields = ['id', 'name', 'description', 'price', 'canteen', 'image', 'available', 'is_ready', 'created_at']
        read_only_fields = ['canteen', 'is_ready']


class ReviewSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.name', read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'canteen', 'item', 'user', 'user_name', 'rating', 'comment', 'created_at']
        read_only_fields = ['canteen', 'user']
