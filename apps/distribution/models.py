from django.db import models
from django.utils.text import slugify


class SluggedName(models.Model):
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ["name"]

    def save(self, *args, **kwargs):
        self.name = (self.name or "").strip()
        if not self.slug:
            self.slug = slugify(self.name)
        super().save(*args, **kwargs)

    def __str__(self):
        return self.name


class Dsr(SluggedName):
    """Field sales representative."""

    phone = models.CharField(max_length=50, blank=True)

    class Meta(SluggedName.Meta):
        verbose_name = "DSR"
        verbose_name_plural = "DSRs"


class Route(SluggedName):
    pass


class Customer(models.Model):
    name = models.CharField(max_length=255)
    shop_name = models.CharField(max_length=255, blank=True)
    mobile = models.CharField(max_length=50, blank=True)
    route = models.ForeignKey(Route, null=True, blank=True, on_delete=models.SET_NULL, related_name="customers")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["name"], name="customer_name_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.shop_name})" if self.shop_name else self.name
