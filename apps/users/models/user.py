from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Customer or staff account; registration and login live outside this service"""
    phone = models.CharField(max_length=20, unique=True, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'
        verbose_name = 'User'
        verbose_name_plural = 'Users'

    def __str__(self):
        return self.username or self.email or f"User {self.id}"
