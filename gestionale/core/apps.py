from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'gestionale.core'

    def ready(self):
        """Import signals when app is ready"""
        import gestionale.core.model_cache  # noqa: F401
