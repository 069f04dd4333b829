"""
Exceptions raised by network construction and tensor arithmetic.
"""


class IncompatibleLayerError(ValueError):
    """
    A layer cannot accept the shape produced by its predecessor.

    Raised at network construction (``prepare``) time; it always indicates a
    misconfigured architecture.
    """

    def __init__(self, layer, dimension, message=None, is_output=False):
        """
        Args:
            layer: The offending layer
            dimension (Dimension): The dimension that violated its contract
            message (str, optional): Extra detail about the violation
            is_output (bool): Whether ``dimension`` is the expected output of
                the last layer rather than an input
        """
        self.layer = layer
        self.dimension = dimension
        if is_output:
            text = f"The last layer {layer} will not produce output of Dimension {dimension}"
        else:
            text = f"{layer} is incompatible with input Dimension {dimension}"
        if message:
            text = f"{text}: {message}"
        super().__init__(text)


class DimensionMismatchError(ValueError):
    """Tensor arithmetic was invoked on operands of incompatible shape."""
