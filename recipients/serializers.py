from rest_framework import serializers

from inventory.serializers import BloodUnitSerializer
from .models import BloodRequest, ClinicalNote, Recipient, Transfusion


class RecipientSerializer(serializers.ModelSerializer):
    full_name = serializers.ReadOnlyField()

    class Meta:
        model = Recipient
        fields = '__all__'
        read_only_fields = ('registered_by', 'created_at', 'updated_at')
        extra_kwargs = {'national_id': {'validators': []}}


class ClinicalNoteSerializer(serializers.ModelSerializer):
    recorded_by = serializers.SerializerMethodField()

    class Meta:
        model = ClinicalNote
        fields = ('id', 'date', 'note', 'category', 'recorded_by')

    def get_recorded_by(self, obj):
        return obj.recorded_by.email if obj.recorded_by else None


class BloodRequestSerializer(serializers.ModelSerializer):
    recipient_name = serializers.SerializerMethodField()
    reserved_units = serializers.SlugRelatedField(many=True, read_only=True, slug_field='unit_id')

    class Meta:
        model = BloodRequest
        fields = '__all__'

    def get_recipient_name(self, obj):
        return obj.recipient.full_name


class BloodRequestInputSerializer(serializers.ModelSerializer):
    recipient_id = serializers.PrimaryKeyRelatedField(queryset=Recipient.objects.all(), source='recipient')
    units_needed = serializers.IntegerField(min_value=1)

    class Meta:
        model = BloodRequest
        fields = ('recipient_id', 'urgency', 'blood_type', 'units_needed', 'diagnosis', 'requested_by',
                  'hospital', 'notes', 'request_date')


class BloodRequestStatusSerializer(serializers.Serializer):
    request_id = serializers.IntegerField()
    status = serializers.ChoiceField(choices=BloodRequest.STATUS_CHOICES)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class UnitReservationSerializer(serializers.Serializer):
    recipient_id = serializers.PrimaryKeyRelatedField(queryset=Recipient.objects.all(), source='recipient')
    blood_type = serializers.ChoiceField(choices=BloodRequest._meta.get_field('blood_type').choices)
    units = serializers.IntegerField(min_value=1)
    urgency = serializers.ChoiceField(choices=BloodRequest.URGENCY_CHOICES, default='routine')
    hospital = serializers.CharField(max_length=200, required=False, allow_blank=True)
    requested_by = serializers.CharField(max_length=200, required=False, allow_blank=True)
    diagnosis = serializers.CharField(max_length=500, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)


class TransfusionSerializer(serializers.ModelSerializer):
    blood_units = BloodUnitSerializer(many=True, read_only=True)
    had_reaction = serializers.ReadOnlyField()
    recipient_name = serializers.SerializerMethodField()

    class Meta:
        model = Transfusion
        fields = '__all__'

    def get_recipient_name(self, obj):
        return obj.recipient.full_name


class TransfusionInputSerializer(serializers.ModelSerializer):
    recipient_id = serializers.PrimaryKeyRelatedField(queryset=Recipient.objects.all(), source='recipient')
    blood_request_id = serializers.PrimaryKeyRelatedField(queryset=BloodRequest.objects.all(),
                                                          source='blood_request', required=False,
                                                          allow_null=True)
    unit_ids = serializers.ListField(child=serializers.CharField(), allow_empty=False)

    class Meta:
        model = Transfusion
        fields = ('recipient_id', 'blood_request_id', 'unit_ids', 'date', 'hospital', 'administered_by',
                  'doctor_name', 'reason', 'reactions', 'outcome', 'notes')

    def validate(self, attrs):
        blood_request = attrs.get('blood_request')
        if blood_request and blood_request.recipient_id != attrs['recipient'].pk:
            raise serializers.ValidationError('Blood request belongs to a different recipient')
        return attrs


class TransfusionUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = Transfusion
        fields = ('reactions', 'outcome', 'notes', 'doctor_name', 'hospital')
