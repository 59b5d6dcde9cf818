from django.db import \
    models  # ORM base classes to define database tables as Python classes

from ..managers import TenantManager
from .entitymembership import Company


# ---------- Client ----------
# Represents the party who receives invoices (AR side)
class Client(models.Model):
    # Multi-tenant: every client belongs to a single company.
    company = models.ForeignKey(Company, on_delete=models.CASCADE)

    # The client’s legal or trade name (also used by bank matching)
    name = models.CharField(max_length=200)

    contact_email = models.EmailField(null=True, blank=True)

    # Standard credit terms
    payment_terms_days = models.IntegerField(default=30)
    """ Example: If terms = 30 → invoice due 30 days after issue. """

    objects = TenantManager()

    class Meta:
        indexes = [
            models.Index(fields=["company", "name"], name="client_company_name_idx"),
        ]
        # Enforce uniqueness per tenant
        constraints = [
            models.UniqueConstraint(
                fields=["company", "name"], name="uq_company_client_name"
            ),
        ]

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
