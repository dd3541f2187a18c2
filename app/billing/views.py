"""
Views for the billing read API.

Endpoints:
    GET /api/v1/billing/groups/{group_id}/memberships/ - Memberships of a group
    GET /api/v1/billing/groups/{group_id}/revenue/entries/ - Recent ledger entries
    GET /api/v1/billing/groups/{group_id}/revenue/summary/ - Per-currency totals

All endpoints are restricted to authenticated staff users. The webhook
endpoint lives in billing.webhooks.views.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import generics
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from billing.models import Membership
from billing.serializers import (
    MembershipSerializer,
    RevenueEntriesQuerySerializer,
    RevenueEntrySerializer,
    RevenueSummarySerializer,
)
from billing.services import RevenueService


@extend_schema(
    operation_id="list_group_memberships",
    summary="List group memberships",
    description="List every membership of a group with its current status.",
    parameters=[
        OpenApiParameter(
            name="status",
            type=str,
            location=OpenApiParameter.QUERY,
            description="Filter by membership status (pending, active, past_due)",
            required=False,
        ),
    ],
    tags=["Billing"],
)
class GroupMembershipListView(generics.ListAPIView):
    """
    List memberships of a group.

    Filtering:
    - ?status=active - Filter by membership status
    """

    permission_classes = [IsAuthenticated, IsAdminUser]
    serializer_class = MembershipSerializer

    def get_queryset(self):
        queryset = Membership.objects.filter(group_id=self.kwargs["group_id"])
        status_filter = self.request.query_params.get("status")
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset


class GroupRevenueEntriesView(APIView):
    """Most recent ledger entries of a group, newest first."""

    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(
        operation_id="list_group_revenue_entries",
        summary="List revenue entries",
        parameters=[RevenueEntriesQuerySerializer],
        responses={200: RevenueEntrySerializer(many=True)},
        tags=["Billing"],
    )
    def get(self, request, group_id):
        query = RevenueEntriesQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)

        entries = RevenueService.entries_for_group(
            group_id, limit=query.validated_data["limit"]
        )
        return Response(RevenueEntrySerializer(entries, many=True).data)


class GroupRevenueSummaryView(APIView):
    """Ledger totals of a group, one row per currency."""

    permission_classes = [IsAuthenticated, IsAdminUser]

    @extend_schema(
        operation_id="get_group_revenue_summary",
        summary="Get revenue summary",
        description=(
            "Gross, net and fee totals per currency. Refunds and chargebacks "
            "are negative, so gross is the net running balance."
        ),
        responses={200: RevenueSummarySerializer(many=True)},
        tags=["Billing"],
    )
    def get(self, request, group_id):
        summary = RevenueService.summary_for_group(group_id)
        return Response(RevenueSummarySerializer(summary, many=True).data)
