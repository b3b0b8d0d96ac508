from django.apps import AppConfig


class SocialChargesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.social_charges'
    verbose_name = "Social charges"
