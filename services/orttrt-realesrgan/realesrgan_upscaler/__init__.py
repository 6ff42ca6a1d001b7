from .codec import Bitmap, InvalidInput, decode, encode

__version__ = "0.1.0"

__all__ = ["Bitmap", "InvalidInput", "decode", "encode", "__version__"]
