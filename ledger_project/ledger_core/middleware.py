from django.utils.deprecation import MiddlewareMixin

from .models import Company


class CurrentCompanyMiddleware(MiddlewareMixin):
    # Attach the active tenant as request.company on every request
    def process_request(self, request):
        request.company = None
        if not request.user.is_authenticated:
            return

        # A company picked in the session wins over the default one
        company_id = request.session.get("active_company_id")
        if company_id:
            # membership check stops session tampering across tenants
            request.company = Company.objects.filter(
                pk=company_id,
                memberships__user=request.user,
                memberships__is_active=True,
            ).first()
            return

        default = getattr(request.user, "default_company", None)
        if default is not None and request.user.is_member_of(default):
            request.company = default
