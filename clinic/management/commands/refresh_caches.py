from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.core.cache import cache
from django.core.management.base import BaseCommand
from django.utils import timezone

from clinic.models import DoctorProfile
from clinic.services.analytics import TIME_RANGES, load_financial_analytics
from clinic.services.booking import UPDATES_GROUP
from clinic.views.analytics import analytics_cache_key


class Command(BaseCommand):
    help = "Recompute cached financial analytics snapshots and tell open dashboards to reload."

    def add_arguments(self, parser):
        parser.add_argument('--per-doctor', action='store_true',
                            help='Also warm the per-doctor snapshots of every active doctor.')

    def _warm(self, time_range, doctor_id, now):
        snapshot = load_financial_analytics(time_range, doctor_id=doctor_id, now=now)
        if snapshot is None:
            return None
        key = analytics_cache_key(time_range, doctor_id)
        cache.set(key, {'ok': True, 'data': snapshot}, settings.CLINIC_ANALYTICS_CACHE_SECONDS)
        return key

    def handle(self, *args, **options):
        now = timezone.now()
        doctor_ids = [None]
        if options['per_doctor']:
            doctor_ids += list(DoctorProfile.objects.filter(status=DoctorProfile.STATUS_ACTIVE)
                               .values_list('id', flat=True))

        refreshed, skipped = [], 0
        for doctor_id in doctor_ids:
            for time_range in TIME_RANGES:
                key = self._warm(time_range, doctor_id, now)
                if key:
                    refreshed.append(key)
                else:
                    skipped += 1

        if skipped:
            self.stderr.write(self.style.WARNING(f"{skipped} snapshots skipped: billing data unavailable"))

        channel_layer = get_channel_layer()
        if channel_layer is not None:
            async_to_sync(channel_layer.group_send)(UPDATES_GROUP, {
                "type": "broadcast.refresh",
                "version": int(now.timestamp()),
                "ts": now.isoformat(),
                "keys": refreshed[:50],
            })

        self.stdout.write(self.style.SUCCESS(f"Refreshed {len(refreshed)} analytics snapshots at {now:%Y-%m-%d %H:%M}"))
