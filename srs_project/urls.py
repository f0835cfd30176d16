from django.urls import include, path

urlpatterns = [
    path("", include("srs.api.urls")),
]
