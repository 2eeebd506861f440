from django.db import models


class StateRecord(models.Model):
    store_name = models.CharField(max_length=128)
    key = models.CharField(max_length=256)
    value = models.JSONField()
    etag = models.CharField(max_length=64)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["store_name", "key"],
                name="state_record_store_key_unique",
            ),
        ]

    def __str__(self):
        return f"StateRecord<{self.store_name}:{self.key}@{self.etag}>"
