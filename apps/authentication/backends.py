from rest_framework import exceptions
from rest_framework.authentication import TokenAuthentication


class ActiveTokenAuthentication(TokenAuthentication):
    """Token auth that refuses banned and deleted accounts."""

    def authenticate_credentials(self, key):
        user, token = super().authenticate_credentials(key)
        if user.is_deleted:
            raise exceptions.AuthenticationFailed("User not found")
        if user.is_banned:
            raise exceptions.PermissionDenied("Your account has been banned. Contact support.")
        return user, token
