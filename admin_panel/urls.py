from django.urls import path
from . import views

app_name = "admin"

urlpatterns = [
    path("forensics/", views.forensics, name="forensics"),
    path(
        "challenges/<int:challenge_id>/analytics/",
        views.challenge_analytics,
        name="challenge_analytics",
    ),
    path("submissions/", views.submission_list, name="submission_list"),
]
