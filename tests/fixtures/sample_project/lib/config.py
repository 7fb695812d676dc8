"""Settings loader."""

import os
from .helpers import read_env

DEFAULT_TIMEOUT = 30


class Settings(object):
    """Runtime settings."""

    def __init__(self, timeout=DEFAULT_TIMEOUT):
        self.timeout = timeout

    def load(self):
        # read overrides from the environment
        self.timeout = int(read_env("TIMEOUT", self.timeout))
        return self


def load_settings():
    return Settings().load()
