import os


def read_env(name, default=None):
    """Read an environment variable."""
    return os.environ.get(name, default)
