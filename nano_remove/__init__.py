from .config import Settings
from .handler import ProxyHandler, ProxyResponse, classify_image, health_response
from .main import create_app

__all__ = ["Settings", "ProxyHandler", "ProxyResponse", "classify_image", "health_response", "create_app"]
