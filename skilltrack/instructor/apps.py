from django.apps import AppConfig


class InstructorConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'instructor'
    verbose_name = 'Instructor catalog'

    def ready(self):
        from instructor import receivers  # noqa: F401
