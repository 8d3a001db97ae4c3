"""Static checks for ONNX graph nodes, with node ordering, status and weight helpers."""

__version__ = "0.1.0"