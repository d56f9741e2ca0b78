"""reactor - classify, watch and terminate macOS processes."""

__version__ = "0.1.0"
