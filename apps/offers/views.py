import logging

from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes

from apps.authentication.permissions import IsAdmin, ReadOnly
from apps.common.responses import success_response

from .models import Offer
from .serializers import OfferSerializer

logger = logging.getLogger(__name__)


def is_admin(user):
    return bool(user and user.is_authenticated and user.is_admin())


@api_view(["GET", "POST"])
@permission_classes([ReadOnly | IsAdmin])
def offer_list(request):
    """Active offers for everyone; admins POST to create one."""
    if request.method == "POST":
        serializer = OfferSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        offer = serializer.save(created_by=request.user)
        logger.info(f"Offer {offer.id} created by {request.user.email}")
        return success_response("Offer created", serializer.data, status.HTTP_201_CREATED)

    offers = Offer.objects.filter(is_active=True)
    return success_response("Offers fetched", OfferSerializer(offers, many=True).data)


@api_view(["GET"])
@permission_classes([IsAdmin])
def all_offers(request):
    """Every offer including deactivated ones."""
    offers = Offer.objects.all()
    return success_response("Offers fetched", OfferSerializer(offers, many=True).data)


@api_view(["GET", "PUT", "PATCH"])
@permission_classes([ReadOnly | IsAdmin])
def offer_detail(request, offer_id):
    offers = Offer.objects.all() if is_admin(request.user) else Offer.objects.filter(is_active=True)
    offer = get_object_or_404(offers, id=offer_id)

    if request.method == "GET":
        return success_response("Offer fetched", OfferSerializer(offer).data)

    serializer = OfferSerializer(offer, data=request.data, partial=request.method == "PATCH")
    serializer.is_valid(raise_exception=True)
    serializer.save()
    logger.info(f"Offer {offer.id} updated by {request.user.email}")
    return success_response("Offer updated", serializer.data)
