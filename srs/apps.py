from django.apps import AppConfig


class SrsConfig(AppConfig):
    name = "srs"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        from .utils.log import configure_logging

        configure_logging()
