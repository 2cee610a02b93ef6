"""
Core serializers.
"""
from rest_framework import serializers


class UserProfileSerializer(serializers.Serializer):
    """Current user profile with role names."""
    id = serializers.IntegerField()
    username = serializers.CharField()
    is_active = serializers.BooleanField()
    roles = serializers.ListField(child=serializers.CharField())
