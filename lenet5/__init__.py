"""LeNet-5 convolutional network for handwritten digit recognition, with IDX and CSV readers and a command line."""

__version__ = "0.1.0"
__all__ = ["__version__"]