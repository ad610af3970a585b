# Import sequences so they get registered in the catalogue when the package is imported
from . import argonaut  # noqa: F401
