from rest_framework import serializers

from .models import BloodUnit, StorageLog, UnitStatusChange


class UnitStatusChangeSerializer(serializers.ModelSerializer):
    changed_by = serializers.SerializerMethodField()

    class Meta:
        model = UnitStatusChange
        fields = ('previous_status', 'new_status', 'changed_by', 'reason', 'changed_at')

    def get_changed_by(self, obj):
        return obj.changed_by.email if obj.changed_by else None


class BloodUnitSerializer(serializers.ModelSerializer):
    is_expired = serializers.SerializerMethodField()
    effective_status = serializers.ReadOnlyField()
    donor_name = serializers.SerializerMethodField()

    class Meta:
        model = BloodUnit
        fields = '__all__'

    def get_is_expired(self, obj):
        return obj.is_expired()

    def get_donor_name(self, obj):
        return obj.donor.full_name if obj.donor else None


class BloodUnitDetailSerializer(BloodUnitSerializer):
    status_history = UnitStatusChangeSerializer(many=True, read_only=True)


class BloodUnitCreateSerializer(serializers.ModelSerializer):
    status = serializers.ChoiceField(choices=('quarantine', 'available'), default='quarantine')

    class Meta:
        model = BloodUnit
        fields = ('unit_id', 'blood_type', 'volume', 'status', 'donor', 'collection_date', 'expiry_date',
                  'collected_by', 'facility', 'refrigerator', 'shelf', 'position', 'test_results',
                  'quality_check')
        extra_kwargs = {
            'unit_id': {'required': False, 'validators': []},
            'expiry_date': {'required': False},
        }

    def validate(self, attrs):
        expiry_date = attrs.get('expiry_date')
        if expiry_date and expiry_date <= attrs['collection_date']:
            raise serializers.ValidationError({'expiry_date': 'Expiry date must be after collection date'})
        return attrs


class BloodUnitUpdateSerializer(serializers.ModelSerializer):
    class Meta:
        model = BloodUnit
        fields = ('volume', 'collected_by', 'facility', 'refrigerator', 'shelf', 'position',
                  'test_results', 'quality_check')


class StorageLogSerializer(serializers.ModelSerializer):
    maintenance_status = serializers.ReadOnlyField()

    class Meta:
        model = StorageLog
        fields = '__all__'


class TemperatureReadingSerializer(serializers.Serializer):
    facility_id = serializers.CharField(max_length=100)
    refrigerator_id = serializers.CharField(max_length=100)
    temperature = serializers.FloatField(error_messages={'invalid': 'Invalid temperature value'})
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    recorded_by = serializers.CharField(max_length=200, required=False)
    status = serializers.CharField(max_length=100, required=False)


class ResolveAlertSerializer(serializers.Serializer):
    alert_id = serializers.IntegerField()
    resolved_by = serializers.CharField(max_length=200)
    resolution = serializers.CharField()


class RelocationSerializer(serializers.Serializer):
    unit_ids = serializers.ListField(child=serializers.CharField(), allow_empty=False)
    facility = serializers.CharField(max_length=100, required=False)
    refrigerator = serializers.CharField(max_length=100, required=False)
    shelf = serializers.CharField(max_length=50)
    position = serializers.CharField(max_length=50, required=False, allow_blank=True)
    reason = serializers.CharField(required=False, allow_blank=True, default='')


class MaintenanceScheduleSerializer(serializers.Serializer):
    facility_id = serializers.CharField(max_length=100)
    refrigerator_id = serializers.CharField(max_length=100)
    scheduled_date = serializers.DateTimeField()
    description = serializers.CharField(required=False, allow_blank=True, default='')
    recorded_by = serializers.CharField(max_length=200, required=False)


class MaintenanceCompleteSerializer(serializers.Serializer):
    maintenance_id = serializers.IntegerField()
    outcome = serializers.ChoiceField(choices=StorageLog.OUTCOME_CHOICES)
    resolved_by = serializers.CharField(max_length=200, required=False)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
    next_scheduled_date = serializers.DateTimeField(required=False)
