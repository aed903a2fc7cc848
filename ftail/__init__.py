"""Follow a growing file across truncation and rotation."""
from .errors import ErrorKind, TailError
from .tailer import END_OF_STREAM, Tailer
from .version import __version__

__all__ = ["END_OF_STREAM", "ErrorKind", "TailError", "Tailer", "__version__"]
