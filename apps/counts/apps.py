from django.apps import AppConfig


class CountsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.counts'
    label = 'counts'
    verbose_name = 'Inventory Counts'
