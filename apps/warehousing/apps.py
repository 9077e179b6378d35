from django.apps import AppConfig


class WarehousingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.warehousing'
    label = 'warehousing'
    verbose_name = 'Locations & Lots'
