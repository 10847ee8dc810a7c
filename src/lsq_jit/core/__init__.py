"""Fixed-size kernels, vector types and the variable-assignment boundary."""
