"""
Django application initialization.
"""

import os


def get_wsgi_application(config_path: str | None = None):
    """
    Get the Django WSGI application configured with our settings.

    Args:
        config_path: Path to config.yaml (optional)
    """
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "bunq_sync.web.settings")
    # os.environ requires strings
    if config_path:
        os.environ["BUNQ_SYNC_CONFIG"] = str(config_path)

    from django.core.wsgi import get_wsgi_application as django_wsgi

    return django_wsgi()


def run_server(host: str = "127.0.0.1", port: int = 8080, config_path: str | None = None):
    """
    Run the Django development server with the trigger endpoint.

    Args:
        host: Host to bind to
        port: Port to listen on
        config_path: Path to config.yaml
    """
    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "bunq_sync.web.settings")
    if config_path:
        os.environ["BUNQ_SYNC_CONFIG"] = str(config_path)

    import django

    django.setup()

    from django.core.management import execute_from_command_line

    print(f"\n🌐 bunq sync trigger at http://{host}:{port}/poll-bunq/")
    print(f"⚙️  Config: {os.environ.get('BUNQ_SYNC_CONFIG', 'config.yaml')}")
    print("\nPress Ctrl+C to stop.\n")

    execute_from_command_line(
        [
            "manage.py",
            "runserver",
            f"{host}:{port}",
            "--noreload",
        ]
    )
