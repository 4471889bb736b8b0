"""Configuration package"""
from config.loader import ConfigLoader, get_config_loader, load_model_overrides

__all__ = ["ConfigLoader", "get_config_loader", "load_model_overrides"]
