from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.db import models
from django.utils.text import slugify
from ..managers import TenantManager

VAT_FREQUENCIES = [
    ("monthly", "Monthly"),
    ("bimonthly", "Bi-monthly"),  # Jan-Feb, Mar-Apr, ...
]


# ---------- Tenant / Company ----------
class Company(models.Model):

    """Tenant / Organization"""
    # Store companyâs full display name
    name = models.CharField(max_length=200)

    slug = models.SlugField(  # A URL-friendly identifier
        max_length=80, unique=True  # no two companies can have the same slug
    )

    # Link to a user account (creator or admin of company)
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        # if user is deleted, company record stays,
        # but owner is set to NULL.
        related_name="owned_companies",
    )

    # Every invoice, expense and journal is booked in this currency
    currency_code = models.CharField(max_length=10, default="ZAR")

    # How often VAT returns are filed (drives VAT period boundaries)
    vat_frequency = models.CharField(
        max_length=10, choices=VAT_FREQUENCIES, default="bimonthly"
    )

    # Store timestamp when the record is first created
    created_at = models.DateTimeField(auto_now_add=True)

    # Meta options
    class Meta:
        verbose_name_plural = "companies"

    # String Representation
    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        # Derive a unique slug from the name when none was given
        # ("Acme Ltd" â "acme-ltd" â "acme-ltd-1" ...)
        if not self.slug:
            base = slugify(self.name)[:70] or "company"
            slug, i = base, 1
            while Company.objects.filter(slug=slug).exclude(pk=self.pk).exists():
                slug = f"{base}-{i}"
                i += 1
            self.slug = slug
        return super().save(*args, **kwargs)


# ---------- Custom User ----------
class User(AbstractUser):  # Built-in user plus the tenant the user works in
    """
    AUTH_USER_MODEL = "ledger_core.User" is set in settings.py
    before the first migrate to avoid migration conflicts
    """
    # A link to a Company (your tenant)
    default_company = models.ForeignKey(
        "Company",
        # Nullable, user might exist before being assigned company
        null=True,
        blank=True,
        on_delete=models.SET_NULL,  # If the company is deleted,
        # keep the user and just clear their default company
        related_name="default_users",
    )

    # Optional contact number field, can be left empty in forms
    phone = models.CharField(max_length=32, blank=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        # helpful in multi-tenant setups (company.default_users lookups)
        indexes = [models.Index(fields=["default_company"], name="user_default_company_idx")]

    # Controls how user is displayed
    def __str__(self):
        # Fall back to username if no name is set
        return self.get_full_name() or self.username

    # Only active memberships grant access to a company
    def is_member_of(self, company):
        return self.memberships.filter(company=company, is_active=True).exists()


# ---------- EntityMembership ----------
class EntityMembership(models.Model):  # Join model between User and Company

    # Limit roles to predefined values
    # Django admin / forms will show a dropdown with these choices
    ROLE_CHOICES = [
        # full control (e.g., the person who created the company)
        ("owner", "Owner"),
        # can manage settings & users
        ("admin", "Admin"),
        # can post journals, invoices, run reconciliation
        ("accountant", "Accountant"),
        ("viewer", "Viewer"),  # read-only access
    ]

    # Link to custom User
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        # If user is deleted, their memberships go too
        on_delete=models.CASCADE,
        related_name="memberships",  # See all companies users belong to
    )

    # Links to a Company record
    company = models.ForeignKey(
        "Company", on_delete=models.CASCADE, related_name="memberships"
    )

    # Store user’s role in the company
    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default="viewer",  # Defaults to "viewer" (safe, read-only)
    )

    # Suspend someoneâs access without deleting the record
    is_active = models.BooleanField(default=True)
    # inactive memberships are ignored by the company middleware

    # Automatically record when membership was created
    created_at = models.DateTimeField(auto_now_add=True)

    # Enforce tenant scoping
    objects = TenantManager()

    class Meta:
        # one user can only have one membership per company
        # (prevents duplicates)
        constraints = [
            models.UniqueConstraint(
                fields=["user", "company"], name="uq_user_company_membership"
            ),
        ]
        # almost every lookup filters by company first
        indexes = [
            models.Index(fields=["company", "user"], name="membership_company_user_idx"),
        ]

    def __str__(self):
        # Make debugging/admin easier
        return f"{self.user} @ {self.company} ({self.role})"

    def clean(self):
        """
        A user's default_company must be one of the user's memberships.
        The membership being validated counts towards that.
        """
        if self.user_id and self.user.default_company_id:
            default_company_pk = self.user.default_company_id
            others = self.user.memberships.all()
            if self.pk:
                # excluding this record if updating
                others = others.exclude(pk=self.pk)
            existing_company_ids = set(others.values_list("company_id", flat=True))
            if (
                default_company_pk not in existing_company_ids
                and default_company_pk != self.company_id
            ):
                raise ValidationError(
                    f"Default company {self.user.default_company} must be a user's membership."
                )

    def save(self, *args, **kwargs):
        self.full_clean()  # run validations before saving
        return super().save(*args, **kwargs)
