import logging

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes

from apps.authentication.permissions import IsAdmin, IsCanteenRole, IsVendor
from apps.common.exceptions import ApiError
from apps.common.pagination import paginate
from apps.common.responses import success_response, error_response
from apps.notifications.utils import notify, notify_admins

from .models import BankDetails, Payout, PayoutRequest, calculate_balance
from .serializers import (
    BankDetailsSerializer,
    BankDetailsUpdateSerializer,
    BankVerificationSerializer,
    PayoutProcessSerializer,
    PayoutRequestCreateSerializer,
    PayoutRequestSerializer,
    PayoutReviewSerializer,
)

logger = logging.getLogger(__name__)


def owned_canteen(user):
    canteen = user.get_canteen()
    if canteen is None:
        raise ApiError("Canteen not found", status_code=404)
    return canteen


def active_bank_details(canteen):
    return BankDetails.objects.filter(canteen=canteen, is_deleted=False).first()


# --------------------
# Vendor: balance and requests
# --------------------
@api_view(["GET"])
@permission_classes([IsVendor])
def balance(request):
    canteen = request.canteen
    totals = calculate_balance(canteen)

    pending = PayoutRequest.objects.filter(
        canteen=canteen,
        status__in=PayoutRequest.OPEN_STATUSES,
        is_deleted=False,
    )
    pending_total = pending.aggregate(total=Sum("requested_amount"))["total"] or 0

    return success_response("Balance fetched", {
        "canteen": {"id": canteen.id, "name": canteen.name},
        "balance": {
            "totalEarnings": totals["totalEarnings"],
            "totalPayouts": totals["totalPayouts"],
            "platformFee": totals["platformFee"],
            "availableBalance": totals["availableBalance"],
            "pendingPayouts": pending_total,
        },
        "statistics": {
            "totalOrders": totals["totalOrders"],
            "completedPayouts": totals["completedPayouts"],
            "pendingPayoutRequests": pending.count(),
        },
        "pendingRequests": PayoutRequestSerializer(pending, many=True).data,
    })


@api_view(["POST"])
@permission_classes([IsVendor])
def request_payout(request):
    """Ask for a withdrawal against the available balance."""
    serializer = PayoutRequestCreateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    amount = serializer.validated_data["requested_amount"]
    canteen = request.canteen

    bank = active_bank_details(canteen)
    if bank is None:
        return error_response("Please add your bank details before requesting a payout")
    if not bank.is_verified:
        return error_response("Your bank details are awaiting verification")

    with transaction.atomic():
        totals = calculate_balance(canteen)
        available = totals["availableBalance"]
        if amount > available:
            return error_response(
                "Insufficient balance",
                availableBalance=available,
                requestedAmount=amount,
            )
        if PayoutRequest.objects.filter(
            canteen=canteen, status__in=PayoutRequest.OPEN_STATUSES, is_deleted=False
        ).exists():
            return error_response("You already have a payout request in progress")

        payout_request = PayoutRequest.objects.create(
            canteen=canteen,
            vendor=request.user,
            requested_amount=amount,
            available_balance=available,
            bank_details=bank.snapshot(),
            request_notes=serializer.validated_data["notes"],
        )
        notify_admins(
            "New payout request",
            f"{canteen.name} requested a payout of Rs. {amount}.",
            "payout",
            {"payoutRequestId": payout_request.id},
        )

    logger.info(f"Payout request {payout_request.id} for Rs. {amount} by canteen {canteen.id}")
    return success_response(
        "Payout request submitted",
        PayoutRequestSerializer(payout_request).data,
        status.HTTP_201_CREATED,
    )


@api_view(["GET"])
@permission_classes([IsVendor])
def payout_history(request):
    requests = PayoutRequest.objects.filter(canteen=request.canteen, is_deleted=False)
    summary = requests.aggregate(
        total=Count("id"),
        completed=Count("id", filter=Q(status=PayoutRequest.STATUS_COMPLETED)),
        pending=Count("id", filter=Q(status__in=PayoutRequest.OPEN_STATUSES)),
        rejected=Count("id", filter=Q(status__in=[PayoutRequest.STATUS_REJECTED, PayoutRequest.STATUS_FAILED])),
        totalAmount=Sum("requested_amount"),
        completedAmount=Sum("requested_amount", filter=Q(status=PayoutRequest.STATUS_COMPLETED)),
    )
    summary["totalAmount"] = summary["totalAmount"] or 0
    summary["completedAmount"] = summary["completedAmount"] or 0

    status_filter = request.query_params.get("status")
    if status_filter:
        requests = requests.filter(status=status_filter)

    items, pagination = paginate(requests, request, total_key="totalRecords", default_limit=20)
    return success_response("Payout history fetched", {
        "requests": PayoutRequestSerializer(items, many=True).data,
        "summary": summary,
        "pagination": pagination,
    })


@api_view(["GET"])
@permission_classes([IsVendor])
def payout_status(request, request_id):
    payout_request = get_object_or_404(
        PayoutRequest, id=request_id, canteen=request.canteen, is_deleted=False
    )
    return success_response("Payout request fetched", PayoutRequestSerializer(payout_request).data)


# --------------------
# Vendor: bank details
# --------------------
@api_view(["GET", "PUT", "DELETE"])
@permission_classes([IsCanteenRole])
def bank_details(request):
    canteen = owned_canteen(request.user)
    bank = active_bank_details(canteen)

    if request.method == "GET":
        if bank is None:
            return error_response("No bank details found", status.HTTP_404_NOT_FOUND)
        return success_response("Bank details fetched", BankDetailsSerializer(bank).data)

    if request.method == "DELETE":
        if bank is None:
            return error_response("No bank details found", status.HTTP_404_NOT_FOUND)
        bank.is_deleted = True
        bank.is_active = False
        bank.save(update_fields=["is_deleted", "is_active", "updated_at"])
        logger.info(f"Bank details {bank.id} removed by {request.user.email}")
        return success_response("Bank details deleted")

    serializer = BankDetailsUpdateSerializer(bank, data=request.data)
    serializer.is_valid(raise_exception=True)
    # Any change sends the account back for verification.
    bank = serializer.save(
        canteen=canteen,
        owner=request.user,
        is_verified=False,
        verified_by=None,
        verified_at=None,
        verification_notes="",
    )
    notify_admins(
        "Bank details submitted",
        f"{canteen.name} submitted bank details for verification.",
        "payout",
        {"bankDetailsId": bank.id},
    )
    logger.info(f"Bank details {bank.id} saved for canteen {canteen.id}")
    return success_response("Bank details saved and sent for verification", BankDetailsSerializer(bank).data)


# --------------------
# Admin
# --------------------
@api_view(["GET"])
@permission_classes([IsAdmin])
def admin_payout_requests(request):
    requests = PayoutRequest.objects.filter(is_deleted=False).select_related("canteen", "vendor")
    status_filter = request.query_params.get("status")
    if status_filter:
        requests = requests.filter(status=status_filter)
    canteen_id = request.query_params.get("canteenId")
    if canteen_id:
        requests = requests.filter(canteen_id=canteen_id)

    items, pagination = paginate(requests, request, total_key="totalRecords", default_limit=20)
    return success_response("Payout requests fetched", {
        "requests": PayoutRequestSerializer(items, many=True).data,
        "pagination": pagination,
    })


@api_view(["POST"])
@permission_classes([IsAdmin])
def review_payout_request(request, request_id):
    serializer = PayoutReviewSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    approve = serializer.validated_data["action"] == "approve"
    notes = serializer.validated_data["notes"]

    payout_request = get_object_or_404(PayoutRequest, id=request_id, is_deleted=False)
    if payout_request.status != PayoutRequest.STATUS_PENDING:
        return error_response(f"Payout request is already {payout_request.status}")

    with transaction.atomic():
        payout_request.review(request.user, approve, notes)
        if approve:
            message = f"Your payout request of Rs. {payout_request.requested_amount} was approved."
        else:
            message = (
                f"Your payout request of Rs. {payout_request.requested_amount} was rejected: "
                f"{payout_request.rejection_reason}"
            )
        notify(
            payout_request.vendor,
            "Payout request reviewed",
            message,
            "payout",
            {"payoutRequestId": payout_request.id, "status": payout_request.status},
        )

    logger.info(f"Payout request {payout_request.id} {payout_request.status} by {request.user.email}")
    return success_response(
        f"Payout request {payout_request.status}",
        PayoutRequestSerializer(payout_request).data,
    )


@api_view(["POST"])
@permission_classes([IsAdmin])
def process_payout(request, request_id):
    """Record the bank transfer for an approved request."""
    serializer = PayoutProcessSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    payout_request = get_object_or_404(PayoutRequest, id=request_id, is_deleted=False)
    if payout_request.status != PayoutRequest.STATUS_APPROVED:
        return error_response("Only approved payout requests can be processed")

    with transaction.atomic():
        payout_request.complete(request.user, data["transaction_id"], data["notes"])
        Payout.objects.create(
            canteen=payout_request.canteen,
            admin=request.user,
            request=payout_request,
            trn_id=data["transaction_id"],
            amount=payout_request.requested_amount,
            notes=data["notes"],
        )
        calculate_balance(payout_request.canteen)
        notify(
            payout_request.vendor,
            "Payout completed",
            f"Rs. {payout_request.requested_amount} has been transferred. Reference: {data['transaction_id']}",
            "payout",
            {"payoutRequestId": payout_request.id, "transactionId": data["transaction_id"]},
        )

    logger.info(f"Payout request {payout_request.id} processed with reference {data['transaction_id']}")
    return success_response("Payout processed", PayoutRequestSerializer(payout_request).data)


@api_view(["GET"])
@permission_classes([IsAdmin])
def admin_bank_details(request):
    details = BankDetails.objects.filter(is_deleted=False).select_related("canteen")
    verified = request.query_params.get("verified")
    if verified in ("true", "false"):
        details = details.filter(is_verified=verified == "true")

    items, pagination = paginate(details, request, total_key="totalRecords", default_limit=20)
    return success_response("Bank details fetched", {
        "bankDetails": BankDetailsSerializer(items, many=True).data,
        "pagination": pagination,
    })


@api_view(["POST"])
@permission_classes([IsAdmin])
def verify_bank_details(request, bank_details_id):
    serializer = BankVerificationSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    verified = serializer.validated_data["verified"]
    notes = serializer.validated_data["notes"]

    bank = get_object_or_404(BankDetails, id=bank_details_id, is_deleted=False)
    bank.is_verified = verified
    bank.verified_by = request.user if verified else None
    bank.verified_at = timezone.now() if verified else None
    bank.verification_notes = notes
    bank.save(update_fields=["is_verified", "verified_by", "verified_at", "verification_notes", "updated_at"])

    notify(
        bank.owner,
        "Bank details verified" if verified else "Bank details rejected",
        notes or ("Your bank details have been verified." if verified else "Please review and resubmit your bank details."),
        "payout",
        {"bankDetailsId": bank.id, "verified": verified},
    )
    logger.info(f"Bank details {bank.id} verified={verified} by {request.user.email}")
    return success_response(
        "Bank details verified" if verified else "Bank details rejected",
        BankDetailsSerializer(bank).data,
    )
