from django.apps import AppConfig


class EchoConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'echo'
    verbose_name = 'Echo Connections'

    def ready(self):
        # Connect domain event receivers
        from . import signals  # noqa: F401
