from django.db import models


class LogEntryQuerySet(models.QuerySet):
    def older_than(self, cutoff, level=None):
        entries = self.filter(timestamp__lt=cutoff)
        if level:
            entries = entries.filter(level=level)
        return entries

    def for_principal(self, email):
        return self.filter(principal_email__iexact=email)


class LogEntry(models.Model):
    """Audit trail row. The acting principal is copied in, so entries outlive user deletion."""

    LEVEL_CHOICES = [(name, name.title()) for name in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')]

    level = models.CharField(max_length=10, choices=LEVEL_CHOICES)
    module = models.CharField(max_length=100)
    message = models.TextField()
    context = models.JSONField(default=dict, blank=True)

    user_id = models.IntegerField(null=True, blank=True)
    principal_email = models.EmailField(blank=True)
    principal_role = models.CharField(max_length=20, blank=True)

    ip_address = models.GenericIPAddressField(null=True, blank=True)
    request_path = models.CharField(max_length=500, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True, db_index=True)

    objects = LogEntryQuerySet.as_manager()

    class Meta:
        ordering = ['-timestamp']
        verbose_name_plural = 'Log entries'
        indexes = [models.Index(fields=['module', 'level'])]

    def __str__(self):
        who = self.principal_email or 'system'
        return f"[{self.level}] {self.module} ({who}): {self.message[:80]}"
