from datetime import date

import django_filters
from dateutil.relativedelta import relativedelta
from django.db.models import Q
from django.utils import timezone

from .eligibility import interval_for
from .models import Donor


class DonorFilter(django_filters.FilterSet):
    blood_type = django_filters.ChoiceFilter(choices=Donor.BLOOD_TYPE_CHOICES)
    status = django_filters.ChoiceFilter(choices=Donor.STATUS_CHOICES)
    gender = django_filters.ChoiceFilter(choices=Donor.GENDER_CHOICES)
    city = django_filters.CharFilter(lookup_expr='icontains')
    state = django_filters.CharFilter(lookup_expr='icontains')
    country = django_filters.CharFilter(lookup_expr='icontains')

    search = django_filters.CharFilter(method='filter_search')
    min_age = django_filters.NumberFilter(method='filter_min_age')
    max_age = django_filters.NumberFilter(method='filter_max_age')
    eligible = django_filters.BooleanFilter(method='filter_eligible')

    class Meta:
        model = Donor
        fields = ['blood_type', 'status', 'gender', 'city', 'state', 'country']

    def filter_search(self, queryset, name, value):
        return queryset.filter(
            Q(first_name__icontains=value) |
            Q(last_name__icontains=value) |
            Q(email__icontains=value) |
            Q(national_id__icontains=value) |
            Q(phone__icontains=value)
        )

    def filter_min_age(self, queryset, name, value):
        max_birth_date = date.today() - relativedelta(years=int(value))
        return queryset.filter(date_of_birth__lte=max_birth_date)

    def filter_max_age(self, queryset, name, value):
        min_birth_date = date.today() - relativedelta(years=int(value) + 1)
        return queryset.filter(date_of_birth__gt=min_birth_date)

    def filter_eligible(self, queryset, name, value):
        if value is None:
            return queryset
        eligible = Donor.objects.eligible_on(timezone.localdate(), interval_for('donations'))
        if value:
            return queryset.filter(pk__in=eligible.values('pk'))
        return queryset.exclude(pk__in=eligible.values('pk'))
