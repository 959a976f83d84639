"""
URL configuration for the HTTP trigger.
"""

from django.urls import path

from . import views

urlpatterns = [
    path("", views.poll_bunq, name="poll_bunq_root"),
    path("poll-bunq/", views.poll_bunq, name="poll_bunq"),
    path("poll-bunq", views.poll_bunq),
]
