from django.apps import AppConfig


class RagAppConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.rag'
    label = 'rag'
    verbose_name = 'Retrieval Augmented Generation'
