"""
Django app configuration for the HTTP trigger.
"""

from django.apps import AppConfig


class BunqSyncWebConfig(AppConfig):
    name = "bunq_sync.web"
    label = "bunq_sync_web"
    verbose_name = "bunq sync trigger"
