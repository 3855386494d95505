from django.urls import path
from . import views

urlpatterns = [
    path("", views.home, name="home"),
    path("health/", views.health_check, name="health_check"),
    path("scoreboard/", views.scoreboard_view, name="scoreboard"),
    path(
        "scoreboard/countries/",
        views.country_scoreboard_view,
        name="country_scoreboard",
    ),
    path("me/", views.me_view, name="me"),
]
