"""Price and liquidity data sources."""
from .pyth import PythOracle
from .uniswap import UniswapGraphClient

__all__ = ["PythOracle", "UniswapGraphClient"]
