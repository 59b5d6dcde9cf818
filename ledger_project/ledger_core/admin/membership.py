from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as DjangoUserAdmin
from django.utils.translation import gettext_lazy as _

from ledger_core.models import Company, EntityMembership, User

from .forms import UserAdminChangeForm, UserAdminCreationForm
from .mixins import TenantAdminMixin


# Register `Company` model in admin with this custom config
@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    """a clean admin table for browsing companies"""

    # columns shown in company list view, including the VAT filing cycle
    list_display = ("id", "name", "slug", "currency_code", "vat_frequency", "created_at")
    search_fields = ("name", "slug")  # look companies up by name or slug
    ordering = ("name",)  # sort companies alphabetically by default

    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if not request.user.is_superuser:
            # only companies the staff user belongs to
            qs = qs.filter(memberships__user=request.user).distinct()
        # Fetch all memberships and their users in bulk
        return qs.prefetch_related("memberships__user")


# Extend stock `DjangoUserAdmin`
@admin.register(User)  # Hook the custom `User` model into Django Admin
class UserAdmin(DjangoUserAdmin):
    # custom forms for the create and edit views
    add_form = UserAdminCreationForm
    form = UserAdminChangeForm
    model = User

    # fields shown in list
    list_display = (
        "username", "email", "get_full_name", "is_staff", "default_company")
    list_filter = ("is_staff", "is_superuser", "is_active")
    search_fields = ("username", "email", "first_name", "last_name")
    ordering = ("username",)

    # Group fields logically on edit user page
    fieldsets = (
        (None, {"fields": ("username", "password")}),
        (_("Personal info"), {"fields":
                              ("first_name", "last_name", "email", "phone")}),
        # default_company must be one of the user's memberships
        (_("Company / Defaults"), {"fields": ("default_company",)}),
        # stock Django groups for permissions and dates
        (
            _("Permissions"),
            {
                "fields": (
                    "is_active",
                    "is_staff",
                    "is_superuser",
                    "groups",
                    "user_permissions",
                ),
            },
        ),
        (_("Important dates"), {"fields": ("last_login", "date_joined")}),
    )

    # Fields on the "add user" page; default_company is set once a
    # membership exists
    add_fieldsets = (
        (
            None,
            {
                "classes": ("wide",),
                "fields": ("username", "email", "password1", "password2"),
            },
        ),
    )

    # Tenant scoping:
    # limit visible users to members of the request.user's companies
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        if request.user.is_superuser:
            # superusers see all users
            return qs
        # companies the logged-in user belongs to
        allowed_company_ids = request.user.memberships.values_list(
            "company_id", flat=True
        )
        # .distinct() because a user can share several companies
        return qs.filter(
            memberships__company_id__in=allowed_company_ids).distinct()


# Register EntityMembership model
@admin.register(EntityMembership)
class EntityMembershipAdmin(TenantAdminMixin, admin.ModelAdmin):
    # Show memberships
    list_display = ("user", "company", "role", "is_active", "created_at")
    list_filter = ("role", "is_active", "company")
    search_fields = ("user__username", "user__email", "company__name")
    readonly_fields = ("created_at",)  # prevent tampering with creation date
    ordering = ("company__name", "user__username")

    # TenantAdminMixin already scopes rows to the active company
    def get_queryset(self, request):
        qs = super().get_queryset(request)
        # Fetch everything in one SQL join
        return qs.select_related("company", "user")

    def _managed_company_ids(self, request):
        # companies where the user is Owner/Admin
        return set(
            request.user.memberships.filter(
                role__in=("owner", "admin")).values_list("company_id", flat=True)
        )

    # Permission checks
    # To modify memberships
    def has_change_permission(self, request, obj=None):
        if request.user.is_superuser:  # Superusers bypass check
            return True
        managed = self._managed_company_ids(request)
        if obj is None:
            # changelist access: Owner/Admin somewhere is enough
            return bool(managed)
        # a single record: only memberships of companies the user manages
        return obj.company_id in managed

    # To delete memberships, same rule as changing them
    def has_delete_permission(self, request, obj=None):
        return self.has_change_permission(request, obj)

    # To add memberships
    def has_add_permission(self, request):
        if request.user.is_superuser:
            return True
        # non-superusers must be Owner/Admin of at least one company
        return bool(self._managed_company_ids(request))
