"""Abertura de portas publicas em instancias AWS Lightsail."""

__version__ = "0.1.0"
