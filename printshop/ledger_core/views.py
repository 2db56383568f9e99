import json
from datetime import date

from django.http import JsonResponse
from django.views.decorators.http import require_http_methods

from .exceptions import InvalidInput, InvalidState, NotFound
from .services.clients import get_client_balance
from .services.instant import instant_invoice
from .services.invoicing import cancel_invoice, client_invoice_history, create_invoice
from .services.payment import delete_payment, receive_payment, update_payment

# service errors -> HTTP status
ERROR_STATUS = (
    (NotFound, 404),
    (InvalidInput, 400),
    (InvalidState, 409),
)


def _error_response(exc):
    for exc_type, status in ERROR_STATUS:
        if isinstance(exc, exc_type):
            message = exc.messages[0] if hasattr(exc, "messages") else str(exc)
            return JsonResponse({"ok": False, "error": message}, status=status)
    raise exc


def _body(request):
    try:
        data = json.loads(request.body or b"{}")
    except ValueError:
        raise InvalidInput("Request body is not valid JSON")
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object")
    return data


def _user(request):
    user = getattr(request, "user", None)
    return user if user is not None and user.is_authenticated else None


def _parse_date(raw):
    if not raw:
        return None
    try:
        return date.fromisoformat(raw)
    except (TypeError, ValueError):
        raise InvalidInput("Dates must be YYYY-MM-DD")


def _invoice_json(invoice):
    return {
        "id": invoice.pk,
        "invoice_number": invoice.invoice_number,
        "status": invoice.status,
        "invoice_date": invoice.invoice_date.isoformat() if invoice.invoice_date else None,
        "subtotal": str(invoice.subtotal),
        "previous_balance": str(invoice.previous_balance),
        "discount": str(invoice.discount),
        "total_amount": str(invoice.total_amount),
        "paid_amount": str(invoice.paid_amount),
        "balance_due": str(invoice.balance_due),
        "previous_invoice": (
            invoice.previous_invoice.invoice_number if invoice.previous_invoice_id else None
        ),
    }


def _allocation_json(entry):
    return {
        "invoice_id": entry["invoice_id"],
        "invoice_number": entry["invoice_number"],
        "amount_applied": str(entry["amount_applied"]),
        "previous_balance": str(entry["previous_balance"]),
        "new_balance": str(entry["new_balance"]),
        "new_status": entry["new_status"],
    }


@require_http_methods(["POST"])
def invoice_create_view(request):
    try:
        data = _body(request)
        invoice = create_invoice(
            data.get("client_id"),
            data.get("items"),
            notes=data.get("notes"),
            due_date=_parse_date(data.get("due_date")),
            discount=data.get("discount"),
            user=_user(request),
        )
    except (NotFound, InvalidInput, InvalidState) as exc:
        return _error_response(exc)
    return JsonResponse({"ok": True, "invoice": _invoice_json(invoice)}, status=201)


@require_http_methods(["POST"])
def instant_invoice_view(request):
    try:
        data = _body(request)
        payment = data.get("payment")
        if payment is not None and not isinstance(payment, dict):
            raise InvalidInput("payment must be an object")
        if payment:
            payment = {
                "amount": payment.get("amount"),
                "method": payment.get("payment_method") or payment.get("method"),
                "reference": payment.get("reference"),
            }
        result = instant_invoice(
            data.get("items"),
            name=data.get("name"),
            phone=data.get("phone"),
            client_id=data.get("client_id"),
            notes=data.get("notes"),
            due_date=_parse_date(data.get("due_date")),
            discount=data.get("discount"),
            payment=payment,
            user=_user(request),
        )
    except (NotFound, InvalidInput, InvalidState) as exc:
        return _error_response(exc)
    return JsonResponse(
        {
            "ok": True,
            "client_id": result.client.client_id,
            "client_created": result.client_created,
            "invoice": _invoice_json(result.invoice),
            "credit_used": str(result.credit_used),
            "credit_balance": str(result.client.credit_balance),
            "receipt_number": result.payment.receipt_number if result.payment else None,
        },
        status=201,
    )


@require_http_methods(["POST"])
def invoice_cancel_view(request, invoice_id):
    try:
        invoice = cancel_invoice(invoice_id, user=_user(request))
    except (NotFound, InvalidState) as exc:
        return _error_response(exc)
    return JsonResponse({"ok": True, "invoice": _invoice_json(invoice)})


@require_http_methods(["POST"])
def payment_create_view(request):
    try:
        data = _body(request)
        result = receive_payment(
            data.get("client_id"),
            data.get("amount"),
            method=data.get("payment_method") or data.get("method"),
            invoice_id=data.get("invoice_id"),
            reference=data.get("reference"),
            notes=data.get("notes"),
            user=_user(request),
        )
    except (NotFound, InvalidInput, InvalidState) as exc:
        return _error_response(exc)
    return JsonResponse(
        {
            "ok": True,
            "receipt_number": result.receipt_number,
            "payment_id": result.payment.pk,
            "allocations": [_allocation_json(a) for a in result.allocations],
            "total_allocated": str(result.total_allocated),
            "credit_added": str(result.credit_added),
        },
        status=201,
    )


@require_http_methods(["PATCH", "DELETE"])
def payment_detail_view(request, payment_id):
    try:
        if request.method == "DELETE":
            details = delete_payment(payment_id, user=_user(request))
            return JsonResponse({"ok": True, "deleted": details["receiptNumber"]})
        changes = {k: v for k, v in _body(request).items() if k not in ("payment_id", "user", "audit")}
        payment = update_payment(payment_id, user=_user(request), **changes)
    except (NotFound, InvalidInput, InvalidState) as exc:
        return _error_response(exc)
    return JsonResponse({
        "ok": True,
        "receipt_number": payment.receipt_number,
        "payment_method": payment.payment_method,
        "reference": payment.reference,
        "notes": payment.notes,
    })


@require_http_methods(["GET"])
def client_balance_view(request, client_id):
    try:
        balance = get_client_balance(client_id)
    except NotFound as exc:
        return _error_response(exc)
    return JsonResponse({
        "pending_balance": str(balance["pending_balance"]),
        "credit_balance": str(balance["credit_balance"]),
    })


@require_http_methods(["GET"])
def client_invoices_view(request, client_id):
    try:
        invoices = client_invoice_history(client_id)
    except NotFound as exc:
        return _error_response(exc)
    return JsonResponse({"invoices": [_invoice_json(inv) for inv in invoices]})
