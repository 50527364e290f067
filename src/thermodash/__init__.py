from typing import Final

__prog__: Final = "thermodash"
__version__: Final = "0.1.0"
