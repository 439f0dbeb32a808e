# projections/views.py
"""
API views for ledger reports.

Reports are computed from journal lines on request by
projections/ledger.py. Views only parse query params and format the
result; an unbalanced trial balance surfaces as 409 OUT_OF_BALANCE.
"""

from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounting.errors import LedgerError
from accounting.views import ledger_error_response, parse_bool
from accounts.authz import resolve_actor
from ops.retry import retry_on_transient
from projections.ledger import LedgerProjector


class GeneralLedgerView(APIView):
    """
    GET /api/reports/general-ledger/

    Query params:
    - account_id: restrict to one account (pk)
    - start_date, end_date: inclusive ISO dates
    - posted_only: true to exclude drafts (default false)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        params = request.query_params

        projector = LedgerProjector(actor.company)
        try:
            report = retry_on_transient(projector.general_ledger)(
                account_id=params.get("account_id"),
                start_date=params.get("start_date"),
                end_date=params.get("end_date"),
                posted_only=parse_bool(params.get("posted_only"), default=False),
            )
        except LedgerError as exc:
            return ledger_error_response(exc)

        return Response(report.to_dict())


class TrialBalanceView(APIView):
    """
    GET /api/reports/trial-balance/

    Query params:
    - start_date, end_date: inclusive ISO dates
    - posted_only: false to include drafts (default true)
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        actor = resolve_actor(request)
        params = request.query_params

        projector = LedgerProjector(actor.company)
        try:
            report = retry_on_transient(projector.trial_balance)(
                start_date=params.get("start_date"),
                end_date=params.get("end_date"),
                posted_only=parse_bool(params.get("posted_only"), default=True),
            )
        except LedgerError as exc:
            return ledger_error_response(exc)

        return Response(report.to_dict())
