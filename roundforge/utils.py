import structlog


def get_roundforge_logger(name):
    """This will add a `roundforge` prefix to logger for easy configuration."""
    return structlog.get_logger(f"roundforge.{name}")
