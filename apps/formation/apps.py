"""
Formation app configuration.
"""
from django.apps import AppConfig


class FormationConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.formation'
    label = 'formation'
    verbose_name = 'Business Formation'
