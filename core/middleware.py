# core/middleware.py
from __future__ import annotations

from django.utils.deprecation import MiddlewareMixin

from . import request_context
from .request_context import RequestContext


class RequestIDMiddleware(MiddlewareMixin):
    """
    Adds a request id for log correlation.

    - request.request_id
    - response header: X-Request-ID
    - threadlocal context for RequestContextFilter

    Must run after AuthenticationMiddleware so the user id is known.
    """

    header_name = "HTTP_X_REQUEST_ID"
    response_header = "X-Request-ID"

    def process_request(self, request):
        rid = request_context.clean_request_id(request.META.get(self.header_name))
        request.request_id = rid

        user = getattr(request, "user", None)
        user_id = user.pk if user is not None and user.is_authenticated else None

        request_context.bind(
            RequestContext(
                request_id=rid,
                user_id=user_id,
                path=request.path or "",
                method=request.method or "",
            )
        )

    def process_response(self, request, response):
        rid = getattr(request, "request_id", None)
        if rid:
            response[self.response_header] = rid
        request_context.clear()
        return response

    def process_exception(self, request, exception):
        request_context.clear()
        return None
