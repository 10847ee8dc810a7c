"""Linear operators, linearization and the CGLS solver."""
