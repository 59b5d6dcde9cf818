import json
import logging
from datetime import datetime
from functools import wraps

from django.core.exceptions import ObjectDoesNotExist, ValidationError
from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from .exceptions import AccountNotFound, CompanyNotFound
from .services import fraud, health, reconciliation, recurring, reporting, vat

logger = logging.getLogger(__name__)


def _error_message(exc):
    if isinstance(exc, ValidationError):
        return "; ".join(exc.messages)
    # 404 details carry internal ids; they go to the log only
    if isinstance(exc, CompanyNotFound):
        return "Company not found"
    if isinstance(exc, AccountNotFound):
        return "Ledger account not configured"
    return "Not found"


def json_endpoint(view):
    """
    Resolve the active company and wrap the result as {success, data}.

    ValidationError → 400, unknown company/account → 404, anything else
    → 500 with a generic message (details go to the log only).
    """
    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            company = getattr(request, "company", None)
            if company is None:
                raise CompanyNotFound("Company not found")
            data = view(request, company, *args, **kwargs)
        except ValidationError as exc:
            return JsonResponse({"success": False, "error": _error_message(exc)}, status=400)
        except ObjectDoesNotExist as exc:
            logger.warning("Not found in %s: %s", view.__name__, exc)
            return JsonResponse({"success": False, "error": _error_message(exc)}, status=404)
        except Exception:
            logger.exception("Unhandled error in %s", view.__name__)
            return JsonResponse(
                {"success": False, "error": "Internal server error"}, status=500
            )
        return JsonResponse({"success": True, "data": data})

    return wrapper


def _json_body(request):
    if not request.body:
        return {}
    try:
        body = json.loads(request.body)
    except ValueError:
        raise ValidationError("Request body must be valid JSON") from None
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


def _date_param(request, name):
    value = request.GET.get(name)
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"{name} must be a YYYY-MM-DD date") from None


# ---------- VAT ----------
@require_http_methods(["GET"])
@json_endpoint
def vat_summary_view(request, company):
    start, end = vat.parse_period_param(request.GET.get("period"), company=company)
    return vat.calculate_vat_for_period(company, start, end).to_dict()


@require_http_methods(["GET"])
@json_endpoint
def vat201_view(request, company):
    start, end = vat.parse_period_param(request.GET.get("period"), company=company)
    return vat.generate_vat201_form(company, start, end)


# ---------- Reconciliation ----------
@require_http_methods(["POST"])
@json_endpoint
def auto_reconcile_view(request, company):
    threshold = _json_body(request).get("threshold")
    result = reconciliation.auto_reconcile_transactions(
        company, threshold=threshold, user=request.user
    )
    return result.to_dict()


# ---------- Recurring billing ----------
@require_http_methods(["POST"])
@json_endpoint
def process_recurring_view(request, company):
    return recurring.process_due_profiles(company=company)


# ---------- Analytics ----------
@require_http_methods(["GET"])
@json_endpoint
def health_score_view(request, company):
    return health.calculate_health_score(company).to_dict()


@require_http_methods(["GET"])
@json_endpoint
def fraud_alerts_view(request, company):
    return [alert.to_dict() for alert in fraud.analyze_fraud(company)]


# ---------- Reports ----------
@require_http_methods(["GET"])
@json_endpoint
def trial_balance_view(request, company):
    start = _date_param(request, "start")
    end = _date_param(request, "end")
    return reporting.trial_balance(company, start, end).to_dict()
