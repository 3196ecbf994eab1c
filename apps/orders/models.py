import re
import uuid
from django.db import models
from django.db.models import BigIntegerField
from django.db.models.functions import Cast, Substr


ORDER_NUMBER_PREFIX = 'ORD-'
ORDER_NUMBER_PATTERN = re.compile(r'^ORD-[0-9]+$')


class CallCenterStatus(models.TextChoices):
    NEW = 'NEW', 'New'
    CONFIRMED = 'CONFIRMED', 'Confirmed'
    NO_ANSWER = 'NO_ANSWER', 'No Answer'
    CANCELLED = 'CANCELLED', 'Cancelled'


def next_order_number() -> str:
    """
    Next sequential order number (ORD-000001, ORD-000002, ...).

    Not safe against concurrent inserts; the unique constraint on
    order_number is the backstop.
    """
    # Compare numerically: "ORD-1000000" sorts below "ORD-999999" as text
    last = (
        Order.objects.filter(order_number__regex=ORDER_NUMBER_PATTERN.pattern)
        .annotate(number=Cast(Substr('order_number', len(ORDER_NUMBER_PREFIX) + 1), BigIntegerField()))
        .order_by('-number')
        .values_list('number', flat=True)
        .first()
    )
    next_num = (last or 0) + 1
    return f"{ORDER_NUMBER_PREFIX}{next_num:06d}"


class Order(models.Model):
    """
    A customer order.

    delivery_status mirrors whatever the carrier last reported for
    tracking_number; call_center_status is owned by the confirmation team.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=20, unique=True, editable=False)

    customer_name = models.CharField(max_length=255)
    customer_phone = models.CharField(max_length=20, blank=True)
    total = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    # Carrier-issued, not unique in practice (re-shipments reuse it)
    tracking_number = models.CharField(max_length=64, blank=True, null=True, db_index=True)
    delivery_status = models.CharField(max_length=100, blank=True, default='')
    call_center_status = models.CharField(
        max_length=20,
        choices=CallCenterStatus.choices,
        default=CallCenterStatus.NEW
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = "Order"
        verbose_name_plural = "Orders"

    def __str__(self):
        return f"{self.order_number} - {self.customer_name}"

    def save(self, *args, **kwargs):
        if not self.order_number:
            self.order_number = next_order_number()
        super().save(*args, **kwargs)
