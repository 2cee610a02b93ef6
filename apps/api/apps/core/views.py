"""
Core views - request context binding and current user profile.
"""
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .observability.correlation import bind_user
from .permissions import get_user_roles
from .serializers import UserProfileSerializer


class RequestContextMixin:
    """
    Binds the DRF-authenticated user to the logging context.

    The correlation middleware runs before DRF authentication, so JWT users
    are only known once ``initial`` has run.
    """

    def initial(self, request, *args, **kwargs):
        super().initial(request, *args, **kwargs)
        bind_user(request.user)


class CurrentUserView(RequestContextMixin, APIView):
    """
    GET /api/v1/auth/me/ - profile of the authenticated user.

    Frontends use ``roles`` to decide which screens to show; the API stays
    the authorization authority.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = request.user
        profile_data = {
            'id': user.pk,
            'username': user.get_username(),
            'is_active': user.is_active,
            'roles': sorted(get_user_roles(user)),
        }
        serializer = UserProfileSerializer(profile_data)
        return Response(serializer.data, status=status.HTTP_200_OK)
