from django.contrib.auth.hashers import check_password, make_password
from django.db import models, transaction


class NumberSequence(models.Model):
    """Row-locked counter behind document numbers (orders per year, returns per day)."""

    key = models.CharField(max_length=64, unique=True)
    last_value = models.PositiveIntegerField(default=0)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.key}={self.last_value}"

    @classmethod
    def next_value(cls, key, seed=None):
        """
        Increment and return the counter for ``key``.

        ``seed`` is called once, when the counter row does not exist yet, to
        start from data written before the counter existed. Must run inside
        the caller's transaction so the row lock is held until commit.
        """
        with transaction.atomic():
            sequence = cls.objects.select_for_update().filter(key=key).first()
            if sequence is None:
                start = int(seed() if seed else 0)
                sequence, _ = cls.objects.get_or_create(key=key, defaults={"last_value": start})
                sequence = cls.objects.select_for_update().get(pk=sequence.pk)
            sequence.last_value += 1
            sequence.save(update_fields=["last_value", "updated_at"])
            return sequence.last_value


class OrderEditLockMode(models.TextChoices):
    ALWAYS = "always", "Always"
    ONCE = "once", "Once"


class GlobalSettings(models.Model):
    SINGLETON_ID = 1

    order_edit_password = models.CharField(max_length=128, blank=True, default="")
    order_edit_lock_mode = models.CharField(
        max_length=10, choices=OrderEditLockMode.choices, default=OrderEditLockMode.ALWAYS
    )
    order_edit_locked = models.BooleanField(default=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name_plural = "global settings"
        constraints = [
            models.CheckConstraint(condition=models.Q(id=1), name="global_settings_singleton"),
        ]

    def save(self, *args, **kwargs):
        self.pk = self.SINGLETON_ID
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        settings_row, _ = cls.objects.get_or_create(pk=cls.SINGLETON_ID)
        return settings_row

    @property
    def has_order_edit_password(self):
        return bool(self.order_edit_password)

    def set_order_edit_password(self, raw_password, lock_mode=OrderEditLockMode.ALWAYS):
        self.order_edit_password = make_password(raw_password) if raw_password else ""
        self.order_edit_lock_mode = lock_mode
        self.order_edit_locked = bool(raw_password)
        self.save()

    def order_edit_requires_password(self):
        if not self.has_order_edit_password:
            return False
        if self.order_edit_lock_mode == OrderEditLockMode.ONCE:
            return self.order_edit_locked
        return True

    def unlock_order_edit(self, raw_password):
        if not self.order_edit_requires_password():
            return True
        if not raw_password or not check_password(raw_password, self.order_edit_password):
            return False
        if self.order_edit_lock_mode == OrderEditLockMode.ONCE:
            self.order_edit_locked = False
            self.save(update_fields=["order_edit_locked", "updated_at"])
        return True
