from .http import GatewayClient, clean_params

__all__ = ["GatewayClient", "clean_params"]
