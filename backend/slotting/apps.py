from django.apps import AppConfig


class SlottingConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'slotting'
    verbose_name = 'Mission slotting'
