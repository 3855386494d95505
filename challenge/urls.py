from django.urls import path
from . import views

urlpatterns = [
    path("", views.challenge_list, name="challenge_list"),
    path("submit-flag/<int:challenge_id>/", views.submit_flag, name="submit_flag"),
    path(
        "<int:challenge_id>/rate-limit/",
        views.rate_limit_status,
        name="rate_limit_status",
    ),
    path(
        "<int:challenge_id>/hints/<int:hint_index>/",
        views.use_hint,
        name="use_hint",
    ),
]
