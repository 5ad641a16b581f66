import json
import logging

from .device import extract_device_info

logger = logging.getLogger(__name__)

LOGIN_PATH_SUFFIX = "auth/login/"


class SmartSecurityMiddleware:
    """
    Attach ``request.device_info`` to every request and, for login
    attempts against a known account, run the pre-login heuristics.
    The results land on ``request.login_flags``; nothing is blocked here.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.device_info = extract_device_info(request)
        request.login_flags = {}

        if request.method == "POST" and request.path.endswith(LOGIN_PATH_SUFFIX):
            email = self.login_email(request)
            if email:
                self.monitor(request, email)

        return self.get_response(request)

    @staticmethod
    def login_email(request):
        if request.content_type == "application/json":
            try:
                payload = json.loads(request.body or b"{}")
            except ValueError:
                return None
            if not isinstance(payload, dict):
                return None
            email = payload.get("email")
        else:
            email = request.POST.get("email")
        return email.strip().lower() if isinstance(email, str) else None

    @staticmethod
    def monitor(request, email):
        from apps.authentication.models import User
        from .services import monitor_login_attempt

        user = User.objects.filter(email=email, is_deleted=False).first()
        if user is None:
            return
        request.login_flags = monitor_login_attempt(user, request.device_info)
        if request.login_flags["requires_verification"]:
            logger.info(f"Login for {email} flagged: {request.login_flags['suspicious_reason']}")
