from django.urls import path
from . import views

app_name = "notifications"

urlpatterns = [
    path("", views.notifications_view, name="notifications"),
    path("read/", views.mark_read_view, name="mark_read"),
    path("stream/<int:channel>/", views.stream_view, name="stream"),
]
